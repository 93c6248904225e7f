from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Mapping

from .config import SiteConfig
from .utils import clean_output_dir, write_nojekyll

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: str, **context: str) -> str:
    # one pass, so substituted values are never scanned for placeholders
    return PLACEHOLDER_RE.sub(lambda match: context.get(match.group(1), match.group(0)), template)


def read_template(name: str = "base.html") -> str:
    return (TEMPLATES_DIR / name).read_text(encoding="utf-8")


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_static(static_dir: Path, output_dir: Path) -> None:
    for item in static_dir.iterdir():
        dest = output_dir / item.name
        if item.is_dir():
            shutil.copytree(item, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(item, dest)


def write_site(tree: Mapping[str, str], config: SiteConfig) -> list[Path]:
    """Replace the output directory with ``tree`` plus the public directory."""
    output_dir = config.output_dir
    clean_output_dir(output_dir, config.project_root)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for rel_path, text in sorted(tree.items()):
        target = output_dir.joinpath(*rel_path.split("/"))
        write_text(target, text)
        written.append(target)

    if config.public_dir.is_dir():
        copy_static(config.public_dir, output_dir)
    else:
        logger.debug("No public directory at %s", config.public_dir)
    write_nojekyll(output_dir)
    return written
