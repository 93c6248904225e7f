from __future__ import annotations

import datetime as dt
import logging
import re
from pathlib import Path
from typing import Iterable, Optional

import markdown
import yaml

from .config import SiteConfig
from .errors import ConfigError, ContentError
from .highlight import highlight_code_blocks
from .models import Post
from .utils import parse_bool

logger = logging.getLogger(__name__)

SLUG_STRIP_RE = re.compile(r"[^a-z0-9\u3040-\u30ff\u3400-\u9fbf\s-]")
SLUG_SPACE_RE = re.compile(r"\s+")
SLUG_DASH_RE = re.compile(r"-+")
DATE_FORMATS = ("%Y/%m/%d", "%Y/%m/%d %H:%M")
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]


def slugify(text: str) -> str:
    text = text.lower().strip()
    text = SLUG_STRIP_RE.sub("", text)
    text = SLUG_SPACE_RE.sub("-", text)
    text = SLUG_DASH_RE.sub("-", text)
    return text.strip("-")


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def parse_front_matter(text: str, source: Optional[Path | str] = None) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            end = i
            break
    if end is None:
        return {}, clean_text

    try:
        meta = yaml.safe_load("\n".join(lines[1:end]))
    except (yaml.YAMLError, ValueError) as exc:
        # out-of-range timestamps surface as ValueError
        raise ContentError(f"frontmatter error: invalid YAML: {exc}", source) from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise ContentError("frontmatter error: header must be a mapping", source)
    body = "\n".join(lines[end + 1 :])
    return meta, body


def parse_tags(value: object, source: Optional[Path | str] = None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = parse_list(value)
    elif isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, (dict, list)):
                raise ContentError("frontmatter error: tags must be plain labels", source)
            if item is not None:
                items.append(str(item))
    else:
        raise ContentError("frontmatter error: tags must be a list", source)
    tags: list[str] = []
    seen: set[str] = set()
    for item in items:
        tag = item.strip()
        # spellings that share a tag page count once
        key = slugify(tag) or tag
        if tag and key not in seen:
            seen.add(key)
            tags.append(tag)
    return tuple(tags)


def parse_post_date(value: object, source: Optional[Path | str] = None) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        for parse in (dt.date.fromisoformat, dt.datetime.fromisoformat):
            try:
                parsed = parse(text)
            except ValueError:
                continue
            return parsed.date() if isinstance(parsed, dt.datetime) else parsed
        for fmt in DATE_FORMATS:
            try:
                return dt.datetime.strptime(text, fmt).date()
            except ValueError:
                continue
    raise ContentError(f"frontmatter error: invalid date {value!r}", source)


def render_markdown(text: str, highlight_style: str) -> str:
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
    html_content = md.convert(text)
    return highlight_code_blocks(html_content, highlight_style)


def meta_text(meta: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = meta.get(key)
        if value is not None:
            return str(value)
    return None


def build_post(text: str, source: str, config: SiteConfig) -> Post:
    """Validate a content file's header and turn it into a :class:`Post`."""
    meta, body = parse_front_matter(text, source)
    title = meta_text(meta, "title")
    if not title or not title.strip() or meta.get("date") in (None, ""):
        raise ContentError("frontmatter error: title/date is required", source)
    title = title.strip()
    date = parse_post_date(meta["date"], source)

    explicit_slug = meta_text(meta, "slug")
    stem = Path(source).stem
    slug = slugify(explicit_slug if explicit_slug is not None else stem)
    if not slug:
        raise ContentError("frontmatter error: cannot derive a slug", source)

    description = (meta_text(meta, "description") or "").strip()
    og_title = meta_text(meta, "ogTitle", "og_title")
    og_description = meta_text(meta, "ogDescription", "og_description")
    return Post(
        title=title,
        date=date,
        date_text=date.strftime(config.date_format),
        slug=slug,
        html=render_markdown(body, config.highlight_style),
        tags=parse_tags(meta.get("tags"), source),
        draft=parse_bool(meta.get("draft")),
        description=description,
        og_title=og_title.strip() if og_title else title,
        og_description=og_description.strip() if og_description else description,
        source=source,
    )


def sort_posts(posts: Iterable[Post]) -> list[Post]:
    # newest first, ties by slug ascending
    ordered = sorted(posts, key=lambda post: post.slug)
    return sorted(ordered, key=lambda post: post.date, reverse=True)


def check_unique_slugs(posts: Iterable[Post]) -> None:
    seen: dict[str, Post] = {}
    for post in posts:
        other = seen.get(post.slug)
        if other is not None:
            raise ContentError(
                f"duplicate slug {post.slug!r} also used by {other.source}", post.source
            )
        seen[post.slug] = post


def list_content_files(content_dir: Path) -> list[Path]:
    if not content_dir.is_dir():
        raise ConfigError(f"Content directory not found: {content_dir}")
    return sorted(content_dir.rglob("*.md"), key=lambda p: p.relative_to(content_dir).as_posix())


def load_posts(config: SiteConfig) -> list[Post]:
    """Parse every content file; drafts are dropped in production mode."""
    posts = []
    for path in list_content_files(config.content_dir):
        rel = path.relative_to(config.content_dir).as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentError(f"cannot read content file: {exc}", rel) from exc
        post = build_post(text, rel, config)
        logger.debug("Parsed %s -> %s", rel, post.slug)
        posts.append(post)

    published = [post for post in posts if not post.draft or not config.is_production]
    skipped = len(posts) - len(published)
    if skipped:
        logger.info("Skipped %d draft post(s)", skipped)
    check_unique_slugs(published)
    return sort_posts(published)
