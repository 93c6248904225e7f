import json
from pathlib import Path

import pytest

from mdblog.config import SiteConfig, env_values, load_config, load_site_config
from mdblog.errors import ConfigError

VALID = {"site_url": "https://example.com", "author": "Jane Doe"}


def test_defaults_are_rejected_in_production(tmp_path):
    with pytest.raises(ConfigError, match="Placeholder"):
        load_site_config(env={}, project_root=tmp_path)


def test_defaults_are_allowed_in_development(tmp_path):
    config = load_site_config(env={}, overrides={"mode": "development"}, project_root=tmp_path)
    assert config.site_url == SiteConfig.site_url
    assert config.content_dir == tmp_path.resolve() / "content" / "posts"
    assert config.output_dir == tmp_path.resolve() / "dist"
    assert config.port == 4173
    assert not config.is_production


def test_file_then_env_then_overrides(tmp_path):
    path = tmp_path / "site.json"
    path.write_text(
        json.dumps({"site_url": "https://file.example", "author": "File", "title": "From file"}),
        encoding="utf-8",
    )
    env = {"BLOG_SITE_URL": "https://env.example", "BLOG_AUTHOR": "Env", "BLOG_BASE_PATH": "blog/"}
    config = load_site_config(path, env=env, overrides={"author": "Cli", "base_path": None}, project_root=tmp_path)
    assert config.title == "From file"
    assert config.site_url == "https://env.example"
    assert config.author == "Cli"
    assert config.base_path == "/blog"
    assert config.config_path == path


def test_blank_env_values_are_ignored():
    assert env_values({"BLOG_SITE_URL": "  ", "PREVIEW_PORT": "8080"}) == {"port": "8080"}


def test_toml_config(tmp_path):
    (tmp_path / "site.toml").write_text(
        'title = "From TOML"\nsite_url = "https://example.com"\nauthor = "Jane"\nfeed_limit = 5\n',
        encoding="utf-8",
    )
    config = load_site_config(Path("site.toml"), env={}, project_root=tmp_path)
    assert config.title == "From TOML"
    assert config.feed_limit == 5
    assert config.config_path == tmp_path.resolve() / "site.toml"


def test_yaml_config(tmp_path):
    (tmp_path / "site.yml").write_text(
        "site_url: https://example.com\nauthor: Jane\ncontent_dir: posts\n", encoding="utf-8"
    )
    config = load_site_config(tmp_path / "site.yml", env={}, project_root=tmp_path)
    assert config.content_dir == tmp_path.resolve() / "posts"


def test_missing_config_file_is_empty(tmp_path):
    assert load_config(tmp_path / "nope.toml") == {}


@pytest.mark.parametrize(
    "name, text",
    [
        ("site.toml", "title = "),
        ("site.yml", "title: [unclosed"),
        ("site.json", "{not json"),
        ("site.json", "[1, 2]"),
    ],
)
def test_invalid_config_file(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_unknown_keys_are_rejected(tmp_path):
    with pytest.raises(ConfigError, match="siteurl"):
        load_site_config(env={}, overrides=dict(VALID, siteurl="x"), project_root=tmp_path)


@pytest.mark.parametrize("site_url", ["example.com", "ftp://example.com"])
def test_site_url_must_be_http(tmp_path, site_url):
    with pytest.raises(ConfigError, match="site_url"):
        load_site_config(env={}, overrides=dict(VALID, site_url=site_url), project_root=tmp_path)


@pytest.mark.parametrize("port", ["abc", "0", "70000"])
def test_invalid_port(tmp_path, port):
    with pytest.raises(ConfigError, match="port"):
        load_site_config(env={"PREVIEW_PORT": port}, overrides=VALID, project_root=tmp_path)


def test_unknown_mode(tmp_path):
    with pytest.raises(ConfigError, match="mode"):
        load_site_config(env={"BLOG_ENV": "staging"}, overrides=VALID, project_root=tmp_path)


def test_env_mode_and_port(tmp_path):
    config = load_site_config(
        env={"BLOG_ENV": "Development", "PREVIEW_PORT": "8080", "DEPLOY_BASE_URL": "https://x.example/"},
        project_root=tmp_path,
    )
    assert config.mode == "development"
    assert config.port == 8080
    assert config.deploy_url == "https://x.example/"

