from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import requests

from .paths import strip_base_path

logger = logging.getLogger(__name__)

ATTR_RE = re.compile(r"""(?:href|src)=["']([^"']+)["']""")
IGNORED_LINK_RE = re.compile(r"^(https?:|mailto:|tel:|javascript:|data:|#)", re.IGNORECASE)
DEPLOY_TARGETS = ("/", "/rss.xml", "/sitemap.xml")
REQUEST_TIMEOUT = 10


@dataclass(frozen=True)
class BrokenLink:
    file: str
    link: str


@dataclass(frozen=True)
class UrlStatus:
    url: str
    status: int
    ok: bool


def strip_hash_and_query(value: str) -> str:
    return value.split("#", 1)[0].split("?", 1)[0]


def is_ignored_link(value: str) -> bool:
    return not value or bool(IGNORED_LINK_RE.match(value))


def link_target(link: str, html_file: Path, output_dir: Path, base_path: str) -> Optional[Path]:
    """Map a link found in ``html_file`` onto a path under ``output_dir``.

    Returns None for links the checker does not own (outside the base path).
    """
    clean = unquote(strip_hash_and_query(link))
    if not clean:
        return None
    if clean.startswith("/"):
        site_path = strip_base_path(base_path, clean)
        if site_path is None:
            return None
        return output_dir / posixpath.normpath(site_path).lstrip("/")
    return Path(posixpath.normpath((html_file.parent / clean).as_posix()))


def candidate_files(target: Path) -> list[Path]:
    if target.suffix:
        return [target]
    return [target / "index.html", target.with_name(target.name + ".html"), target]


def find_broken_links(output_dir: Path, base_path: str = "") -> tuple[list[BrokenLink], int]:
    """Check every internal ``href``/``src`` in the emitted HTML.

    Returns the broken links and the number of HTML files scanned.
    """
    html_files = sorted(output_dir.rglob("*.html"))
    broken: list[BrokenLink] = []
    for html_file in html_files:
        source = html_file.read_text(encoding="utf-8")
        for match in ATTR_RE.finditer(source):
            link = match.group(1)
            if is_ignored_link(link):
                continue
            target = link_target(link, html_file, output_dir, base_path)
            if target is None:
                continue
            if not any(candidate.exists() for candidate in candidate_files(target)):
                broken.append(BrokenLink(html_file.relative_to(output_dir).as_posix(), link))
    return broken, len(html_files)


def check_deployed(base_url: str, session: Optional[requests.Session] = None) -> list[UrlStatus]:
    """Fetch the home page, feed and sitemap of a deployed site."""
    session = session or requests.Session()
    results = []
    for target in DEPLOY_TARGETS:
        url = f"{base_url.rstrip('/')}{target}"
        try:
            response = session.get(url, allow_redirects=True, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            logger.warning("Request to %s failed: %s", url, exc)
            results.append(UrlStatus(url, 0, False))
            continue
        results.append(UrlStatus(url, response.status_code, response.ok))
    return results
