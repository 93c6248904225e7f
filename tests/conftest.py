import pytest

from helpers import DRAFT, HELLO, SECOND, write_post
from mdblog.config import ENV_KEYS, load_site_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_KEYS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def content_dir(tmp_path):
    directory = tmp_path / "content" / "posts"
    directory.mkdir(parents=True)
    return directory


@pytest.fixture
def sample_posts(content_dir):
    write_post(content_dir, "hello.md", HELLO)
    write_post(content_dir, "2024/second.md", SECOND)
    write_post(content_dir, "draft.md", DRAFT)
    return content_dir


@pytest.fixture
def make_config(tmp_path):
    def factory(**overrides):
        values = {
            "title": "Test Blog",
            "description": "Notes & things",
            "site_url": "https://example.com",
            "author": "Jane Doe",
        }
        values.update(overrides)
        return load_site_config(env={}, overrides=values, project_root=tmp_path)

    return factory
