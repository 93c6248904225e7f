from __future__ import annotations

from pathlib import Path
from typing import Optional


class SiteError(Exception):
    """Base class for errors that abort a build."""


class ConfigError(SiteError):
    pass


class ContentError(SiteError):
    def __init__(self, message: str, source: Optional[Path | str] = None):
        self.source = str(source) if source is not None else None
        if self.source:
            message = f"{message} ({self.source})"
        super().__init__(message)
