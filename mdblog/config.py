from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError
from .paths import normalize_base_path
from .utils import parse_int

try:
    import tomllib as toml
except ImportError:
    try:
        import tomli as toml
    except ImportError:  # pragma: no cover - optional dependency
        toml = None

import yaml

MODES = ("production", "development")
PLACEHOLDERS = ("YOUR_GITHUB_USERNAME", "YOUR_NAME")
URL_RE = re.compile(r"^https?://")

# environment variable -> config key
ENV_KEYS = {
    "BLOG_SITE_URL": "site_url",
    "BLOG_BASE_PATH": "base_path",
    "BLOG_AUTHOR": "author",
    "BLOG_ENV": "mode",
    "PREVIEW_HOST": "host",
    "PREVIEW_PORT": "port",
    "DEPLOY_BASE_URL": "deploy_url",
}


@dataclass(frozen=True)
class SiteConfig:
    title: str = "My Blog"
    description: str = "A static blog built from Markdown."
    language: str = "en"
    site_url: str = "https://YOUR_GITHUB_USERNAME.github.io"
    base_path: str = ""
    author: str = "YOUR_NAME"
    content_dir: Path = Path("content/posts")
    public_dir: Path = Path("public")
    output_dir: Path = Path("dist")
    project_root: Path = field(default_factory=Path.cwd)
    config_path: Optional[Path] = None
    mode: str = "production"
    date_format: str = "%Y-%m-%d"
    feed_limit: int = 0
    highlight_style: str = "github-dark"
    host: str = "127.0.0.1"
    port: int = 4173
    deploy_url: str = ""

    @property
    def is_production(self) -> bool:
        return self.mode == "production"


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        if toml is None:
            raise ConfigError("TOML config requires tomllib (Python 3.11+) or tomli.")
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def env_values(env: Mapping[str, str]) -> dict:
    values = {}
    for name, key in ENV_KEYS.items():
        value = (env.get(name) or "").strip()
        if value:
            values[key] = value
    return values


def has_placeholder(config: SiteConfig) -> bool:
    if not config.site_url.strip() or not config.author.strip():
        return True
    return any(marker in config.site_url or marker in config.author for marker in PLACEHOLDERS)


def validate(config: SiteConfig) -> SiteConfig:
    if config.mode not in MODES:
        raise ConfigError(f"Unknown mode {config.mode!r}; expected one of {', '.join(MODES)}.")
    if config.is_production and has_placeholder(config):
        raise ConfigError(
            "Placeholder site settings are still in place. "
            "Set BLOG_SITE_URL / BLOG_BASE_PATH / BLOG_AUTHOR and try again."
        )
    if not URL_RE.match(config.site_url):
        raise ConfigError(f"site_url must start with http:// or https://: {config.site_url!r}")
    if not 0 < config.port < 65536:
        raise ConfigError(f"Invalid preview port: {config.port}")
    return config


def load_site_config(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, object]] = None,
    project_root: Optional[Path] = None,
) -> SiteConfig:
    """Merge the config file, environment and CLI overrides, in that order."""
    env = os.environ if env is None else env
    root = (project_root or Path.cwd()).resolve()
    values: dict = {}
    if config_path is not None:
        if not config_path.is_absolute():
            config_path = root / config_path
        values.update(load_config(config_path))
    values.update(env_values(env))
    values.update({key: value for key, value in (overrides or {}).items() if value is not None})

    known = set(SiteConfig.__dataclass_fields__) - {"project_root", "config_path"}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    def resolve_dir(key: str, default: Path) -> Path:
        path = Path(str(values.get(key) or default))
        return path if path.is_absolute() else root / path

    defaults = SiteConfig(project_root=root)
    port = parse_int(values.get("port"), -1)
    config = SiteConfig(
        title=str(values.get("title", defaults.title)),
        description=str(values.get("description", defaults.description)),
        language=str(values.get("language", defaults.language)),
        site_url=str(values.get("site_url", defaults.site_url)).strip(),
        base_path=normalize_base_path(str(values.get("base_path", defaults.base_path))),
        author=str(values.get("author", defaults.author)),
        content_dir=resolve_dir("content_dir", defaults.content_dir),
        public_dir=resolve_dir("public_dir", defaults.public_dir),
        output_dir=resolve_dir("output_dir", defaults.output_dir),
        project_root=root,
        config_path=config_path,
        mode=str(values.get("mode", defaults.mode)).strip().lower(),
        date_format=str(values.get("date_format", defaults.date_format)),
        feed_limit=max(0, parse_int(values.get("feed_limit"), defaults.feed_limit)),
        highlight_style=str(values.get("highlight_style", defaults.highlight_style)),
        host=str(values.get("host", defaults.host)),
        port=defaults.port if "port" not in values else port,
        deploy_url=str(values.get("deploy_url", defaults.deploy_url)).strip(),
    )
    return validate(config)
