from __future__ import annotations

import html
import re
from functools import lru_cache

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import ConfigError

PLAINTEXT = "plaintext"
LANGUAGES = {
    PLAINTEXT,
    "bash",
    "css",
    "html",
    "javascript",
    "json",
    "markdown",
    "typescript",
    "tsx",
    "yaml",
    "python",
}
ALIASES = {
    "text": PLAINTEXT,
    "txt": PLAINTEXT,
    "plain": PLAINTEXT,
    "sh": "bash",
    "shell": "bash",
    "zsh": "bash",
    "js": "javascript",
    "mjs": "javascript",
    "ts": "typescript",
    "md": "markdown",
    "yml": "yaml",
    "py": "python",
    "htm": "html",
}
# pygments lexer names where they differ from ours
LEXER_NAMES = {PLAINTEXT: "text"}

CODE_BLOCK_RE = re.compile(
    r'<pre><code(?: class="(?:language-)?(?P<lang>[^"]*)")?>(?P<code>.*?)</code></pre>',
    re.DOTALL,
)


def resolve_language(name: str | None) -> str:
    lang = (name or "").strip().lower()
    lang = ALIASES.get(lang, lang)
    return lang if lang in LANGUAGES else PLAINTEXT


@lru_cache(maxsize=None)
def get_formatter(style: str) -> HtmlFormatter:
    try:
        return HtmlFormatter(style=style, noclasses=True, cssclass="highlight", wrapcode=True)
    except ClassNotFound as exc:
        raise ConfigError(f"Unknown highlight style: {style}") from exc


def get_lexer(lang: str):
    try:
        return get_lexer_by_name(LEXER_NAMES.get(lang, lang))
    except ClassNotFound:
        # older pygments releases lack some lexers (tsx)
        return get_lexer_by_name("text")


def highlight_code(code: str, language: str | None, style: str) -> str:
    lang = resolve_language(language)
    formatted = highlight(code, get_lexer(lang), get_formatter(style))
    return formatted.replace('<div class="highlight"', f'<div class="highlight" data-lang="{lang}"', 1)


def highlight_code_blocks(html_text: str, style: str) -> str:
    """Replace the plain ``<pre><code>`` blocks markdown emits with highlighted ones."""

    def repl(match: re.Match) -> str:
        code = html.unescape(match.group("code"))
        return highlight_code(code, match.group("lang"), style)

    return CODE_BLOCK_RE.sub(repl, html_text)
