"""URL and path helpers shared by every emitted artifact and the preview server.

All site-relative paths start with ``/`` and are turned into links with
:func:`with_base_path` (HTML) or :func:`to_absolute_url` (feeds, sitemap,
canonical and OG URLs). :func:`strip_base_path` is the inverse used when a
request path or an emitted link has to be mapped back onto the output
directory.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from .models import Post


def normalize_base_path(raw: Optional[str]) -> str:
    value = (raw or "").strip().strip("/")
    return f"/{value}" if value else ""


def with_base_path(base_path: str, pathname: str) -> str:
    clean = pathname if pathname.startswith("/") else f"/{pathname}"
    return f"{base_path}{clean}"


def to_absolute_url(site_url: str, base_path: str, pathname: str) -> str:
    return f"{site_url.rstrip('/')}{with_base_path(base_path, pathname)}"


def strip_base_path(base_path: str, request_path: str) -> Optional[str]:
    if not base_path:
        return request_path
    if request_path == "/":
        return None
    if request_path != base_path and not request_path.startswith(f"{base_path}/"):
        return None
    return request_path[len(base_path) :] or "/"


def post_path(post: Post) -> str:
    return f"/posts/{quote(post.slug, safe='')}/"


def og_path(post: Post) -> str:
    return f"/og/{quote(post.slug, safe='')}.svg"


def tag_path(tag_slug: str) -> str:
    return f"/tags/{quote(tag_slug, safe='')}/"
