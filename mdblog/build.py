from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Optional

from .config import SiteConfig
from .content import load_posts
from .models import BuildResult
from .pages import build_tag_map, render_site
from .render import write_site

logger = logging.getLogger(__name__)


def build_site(config: SiteConfig, now: Optional[dt.datetime] = None) -> BuildResult:
    """Regenerate the whole output directory from the content directory.

    Every post is parsed and rendered before the output directory is
    touched, so a content error leaves the previous output in place.
    """
    start = time.perf_counter()
    posts = load_posts(config)
    tree = render_site(posts, config, now=now)
    written = write_site(tree, config)
    elapsed = time.perf_counter() - start
    tags = len(build_tag_map(posts))
    logger.info("Build complete: %d posts, %d tags (%s, %.2fs)", len(posts), tags, config.mode, elapsed)
    logger.debug("Site generated in: %s", config.output_dir)
    return BuildResult(
        output_dir=str(config.output_dir),
        posts=len(posts),
        tags=tags,
        written=tuple(path.relative_to(config.output_dir).as_posix() for path in written),
    )
