import datetime as dt

import pytest

from mdblog.content import (
    build_post,
    load_posts,
    parse_front_matter,
    parse_post_date,
    parse_tags,
    slugify,
)
from mdblog.errors import ConfigError, ContentError

from helpers import write_post


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hello, World!", "hello-world"),
        ("  Multiple   spaces ", "multiple-spaces"),
        ("C++ & Rust", "c-rust"),
        ("日本語 タイトル", "日本語-タイトル"),
        ("already-a-slug", "already-a-slug"),
        ("!!!", ""),
        ("  -Edges- and trailing! ", "edges-and-trailing"),
        ("What?", "what"),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_parse_front_matter_reads_yaml_header():
    meta, body = parse_front_matter("---\ntitle: Hi\ntags: [a, b]\n---\nBody\n")
    assert meta == {"title": "Hi", "tags": ["a", "b"]}
    assert body == "Body"


def test_parse_front_matter_without_header_returns_text():
    meta, body = parse_front_matter("\ufeffJust text")
    assert meta == {}
    assert body == "Just text"


def test_parse_front_matter_rejects_non_mapping():
    with pytest.raises(ContentError):
        parse_front_matter("---\n- a\n- b\n---\nBody", "list.md")


def test_parse_front_matter_rejects_broken_yaml():
    with pytest.raises(ContentError) as excinfo:
        parse_front_matter("---\ntitle: [unclosed\n---\nBody", "broken.md")
    assert excinfo.value.source == "broken.md"


def test_parse_tags_trims_and_dedupes():
    assert parse_tags("a, b, a") == ("a", "b")
    assert parse_tags([" x ", "", "x", 3]) == ("x", "3")
    assert parse_tags(None) == ()


def test_parse_tags_folds_spellings_of_the_same_tag():
    assert parse_tags(["Python", "python", " PYTHON ", "Web Dev", "web-dev"]) == ("Python", "Web Dev")


def test_parse_tags_rejects_mapping():
    with pytest.raises(ContentError):
        parse_tags({"a": 1})


@pytest.mark.parametrize(
    "value, expected",
    [
        (dt.date(2024, 1, 2), dt.date(2024, 1, 2)),
        (dt.datetime(2024, 1, 2, 10, 30), dt.date(2024, 1, 2)),
        ("2024-01-02", dt.date(2024, 1, 2)),
        ("2024-01-02T08:00:00", dt.date(2024, 1, 2)),
        ("2024/01/05", dt.date(2024, 1, 5)),
    ],
)
def test_parse_post_date(value, expected):
    assert parse_post_date(value) == expected


@pytest.mark.parametrize("value", ["not a date", "2024-13-01", 20240101])
def test_parse_post_date_rejects_invalid(value):
    with pytest.raises(ContentError):
        parse_post_date(value, "bad.md")


def test_build_post_defaults(make_config):
    post = build_post("---\ntitle: My Post\ndate: 2024-02-03\n---\nBody", "notes/My Post.md", make_config())
    assert post.slug == "my-post"
    assert post.og_title == "My Post"
    assert post.og_description == ""
    assert post.date_text == "2024-02-03"
    assert post.tags == ()
    assert post.draft is False
    assert "<p>Body</p>" in post.html


def test_build_post_uses_explicit_slug_and_og_fields(make_config):
    text = (
        "---\ntitle: T\ndate: 2024-02-03\nslug: Custom Slug\n"
        "description: D\nogDescription: OG D\n---\n"
    )
    post = build_post(text, "x.md", make_config(date_format="%Y/%m/%d"))
    assert post.slug == "custom-slug"
    assert post.og_title == "T"
    assert post.og_description == "OG D"
    assert post.date_text == "2024/02/03"


@pytest.mark.parametrize(
    "text",
    [
        "---\ndate: 2024-01-01\n---\nno title",
        "---\ntitle: No date\n---\nbody",
        "no header at all",
        "---\ntitle: ''\ndate: 2024-01-01\n---\n",
    ],
)
def test_build_post_requires_title_and_date(text, make_config):
    with pytest.raises(ContentError, match="title/date is required"):
        build_post(text, "missing.md", make_config())


def test_build_post_rejects_empty_slug(make_config):
    with pytest.raises(ContentError, match="slug"):
        build_post("---\ntitle: T\ndate: 2024-01-01\n---\n", "!!!.md", make_config())


def test_load_posts_skips_drafts_in_production(sample_posts, make_config):
    posts = load_posts(make_config())
    assert [post.slug for post in posts] == ["custom-slug", "hello"]


def test_load_posts_keeps_drafts_in_development(sample_posts, make_config):
    posts = load_posts(make_config(mode="development"))
    assert [post.slug for post in posts] == ["draft", "custom-slug", "hello"]
    assert posts[0].draft is True


def test_load_posts_orders_same_day_posts_by_slug(content_dir, make_config):
    for name in ("b.md", "a.md", "c.md"):
        write_post(content_dir, name, f"---\ntitle: {name}\ndate: 2024-01-01\n---\n")
    posts = load_posts(make_config())
    assert [post.slug for post in posts] == ["a", "b", "c"]


def test_load_posts_rejects_duplicate_slugs(content_dir, make_config):
    write_post(content_dir, "one.md", "---\ntitle: One\ndate: 2024-01-01\nslug: same\n---\n")
    write_post(content_dir, "two/same.md", "---\ntitle: Two\ndate: 2024-01-02\n---\n")
    with pytest.raises(ContentError, match="duplicate slug 'same'"):
        load_posts(make_config())


def test_load_posts_allows_draft_sharing_slug_in_production(content_dir, make_config):
    write_post(content_dir, "one.md", "---\ntitle: One\ndate: 2024-01-01\nslug: same\n---\n")
    write_post(content_dir, "same.md", "---\ntitle: Two\ndate: 2024-01-02\ndraft: true\n---\n")
    assert [post.title for post in load_posts(make_config())] == ["One"]


def test_load_posts_reports_failing_file(content_dir, make_config):
    write_post(content_dir, "ok.md", "---\ntitle: Ok\ndate: 2024-01-01\n---\n")
    write_post(content_dir, "nested/bad.md", "---\ntitle: Bad\n---\n")
    with pytest.raises(ContentError) as excinfo:
        load_posts(make_config())
    assert excinfo.value.source == "nested/bad.md"


def test_load_posts_requires_content_dir(make_config, tmp_path):
    with pytest.raises(ConfigError):
        load_posts(make_config(content_dir=str(tmp_path / "nope")))
