from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Post:
    title: str
    date: dt.date
    date_text: str
    slug: str
    html: str
    tags: tuple[str, ...] = ()
    draft: bool = False
    description: str = ""
    og_title: str = ""
    og_description: str = ""
    source: str = ""


@dataclass(frozen=True)
class Tag:
    name: str
    slug: str
    posts: tuple[Post, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BuildResult:
    output_dir: str
    posts: int
    tags: int
    written: tuple[str, ...] = ()
