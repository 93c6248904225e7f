from __future__ import annotations

import datetime as dt
import html
from typing import Optional

from .config import SiteConfig
from .content import slugify
from .errors import ContentError
from .models import Post, Tag
from .paths import og_path, post_path, tag_path, to_absolute_url, with_base_path
from .render import read_template, render_template
from .utils import rfc822_date

SiteTree = dict[str, str]


def build_tag_map(posts: list[Post]) -> list[Tag]:
    """Group posts by tag slug; the first spelling seen names the tag."""
    names: dict[str, str] = {}
    grouped: dict[str, list[Post]] = {}
    for post in posts:
        for name in post.tags:
            slug = slugify(name)
            if not slug:
                raise ContentError(f"tag {name!r} has no usable characters", post.source)
            names.setdefault(slug, name)
            items = grouped.setdefault(slug, [])
            if post not in items:
                items.append(post)
    return [Tag(name=names[slug], slug=slug, posts=tuple(grouped[slug])) for slug in sorted(grouped)]


def render_tag_links(post: Post, config: SiteConfig) -> str:
    return " ".join(
        f'<a class="tag" href="{html.escape(with_base_path(config.base_path, tag_path(slugify(tag))))}">'
        f"#{html.escape(tag)}</a>"
        for tag in post.tags
    )


def render_post_list(posts: list[Post] | tuple[Post, ...], config: SiteConfig) -> str:
    items = []
    for post in posts:
        url = html.escape(with_base_path(config.base_path, post_path(post)))
        items.append(
            '<li class="card">'
            f'<a href="{url}"><h2>{html.escape(post.title)}</h2></a>'
            f'<p class="muted">{html.escape(post.date_text)}</p>'
            f"<p>{html.escape(post.description)}</p>"
            f'<div class="tags">{render_tag_links(post, config)}</div>'
            "</li>"
        )
    return f'<ul class="post-list">{"".join(items)}</ul>'


def layout(
    template: str,
    config: SiteConfig,
    *,
    title: str,
    description: str,
    body: str,
    canonical_path: str,
    og_image_path: Optional[str] = None,
    og_title: Optional[str] = None,
    og_description: Optional[str] = None,
    noindex: bool = False,
    year: Optional[int] = None,
) -> str:
    full_title = f"{title} | {config.title}"
    extra_head = []
    if og_image_path:
        og_image = html.escape(to_absolute_url(config.site_url, config.base_path, og_image_path))
        extra_head.append(f'<meta property="og:image" content="{og_image}" />')
        extra_head.append(f'<meta name="twitter:image" content="{og_image}" />')
    if noindex:
        extra_head.append('<meta name="robots" content="noindex" />')
    return render_template(
        template,
        lang=html.escape(config.language),
        title=html.escape(full_title),
        description=html.escape(description),
        canonical_url=html.escape(to_absolute_url(config.site_url, config.base_path, canonical_path)),
        feed_url=html.escape(with_base_path(config.base_path, "/rss.xml")),
        og_type="article" if og_image_path else "website",
        og_title=html.escape(og_title or full_title),
        og_description=html.escape(og_description if og_description is not None else description),
        extra_head="\n    ".join(extra_head),
        home_url=html.escape(with_base_path(config.base_path, "/")),
        site_title=html.escape(config.title),
        site_description=html.escape(config.description),
        year=str(year or dt.date.today().year),
        author=html.escape(config.author),
        content=body,
    )


def render_og_svg(post: Post, config: SiteConfig) -> str:
    title = html.escape(post.og_title)
    description = html.escape(post.og_description)
    return "\n".join(
        [
            '<svg xmlns="http://www.w3.org/2000/svg" width="1200" height="630" '
            f'viewBox="0 0 1200 630" role="img" aria-label="{title}">',
            "  <defs>",
            '    <linearGradient id="bg" x1="0" y1="0" x2="1" y2="1">',
            '      <stop offset="0%" stop-color="#0f172a" />',
            '      <stop offset="100%" stop-color="#1e293b" />',
            "    </linearGradient>",
            "  </defs>",
            '  <rect width="1200" height="630" fill="url(#bg)" rx="28" />',
            f'  <text x="72" y="130" fill="#94a3b8" font-size="34">{html.escape(config.title)}</text>',
            '  <foreignObject x="72" y="170" width="1056" height="320">',
            '    <div xmlns="http://www.w3.org/1999/xhtml" style="color:#e2e8f0;'
            "font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',sans-serif;"
            'font-size:64px;font-weight:700;line-height:1.2;">',
            f"      {title}",
            "    </div>",
            "  </foreignObject>",
            f'  <text x="72" y="560" fill="#cbd5e1" font-size="30">{description}</text>',
            "</svg>",
        ]
    )


def build_posts(tree: SiteTree, template: str, posts: list[Post], config: SiteConfig, year: int) -> None:
    for post in posts:
        body = (
            "<article>"
            f"<h1>{html.escape(post.title)}</h1>"
            f'<p class="muted">{html.escape(post.date_text)}</p>'
            f'<div class="tags">{render_tag_links(post, config)}</div>'
            f"{post.html}"
            "</article>"
        )
        # files are keyed by the raw slug; links carry the percent-encoded form
        tree[f"posts/{post.slug}/index.html"] = layout(
            template,
            config,
            title=post.title,
            description=post.description,
            body=body,
            canonical_path=post_path(post),
            og_image_path=og_path(post),
            og_title=post.og_title,
            og_description=post.og_description,
            year=year,
        )
        tree[f"og/{post.slug}.svg"] = render_og_svg(post, config)


def build_index(tree: SiteTree, template: str, posts: list[Post], config: SiteConfig, year: int) -> None:
    body = f"<section><h2>Posts</h2>{render_post_list(posts, config)}</section>"
    tree["index.html"] = layout(
        template,
        config,
        title="Home",
        description=config.description,
        body=body,
        canonical_path="/",
        year=year,
    )


def build_tags(tree: SiteTree, template: str, tags: list[Tag], config: SiteConfig, year: int) -> None:
    for tag in tags:
        body = f"<section><h2>#{html.escape(tag.name)}</h2>{render_post_list(tag.posts, config)}</section>"
        tree[f"tags/{tag.slug}/index.html"] = layout(
            template,
            config,
            title=f"Tag: {tag.name}",
            description=f"Posts tagged {tag.name}",
            body=body,
            canonical_path=tag_path(tag.slug),
            year=year,
        )


def build_rss(tree: SiteTree, posts: list[Post], config: SiteConfig, now: dt.datetime) -> None:
    feed_posts = posts[: config.feed_limit] if config.feed_limit else posts
    items = []
    for post in feed_posts:
        link = html.escape(to_absolute_url(config.site_url, config.base_path, post_path(post)))
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"  <title>{html.escape(post.title)}</title>",
                    f"  <link>{link}</link>",
                    f"  <guid>{link}</guid>",
                    f"  <pubDate>{rfc822_date(post.date)}</pubDate>",
                    f"  <description>{html.escape(post.description)}</description>",
                    "</item>",
                ]
            )
        )
    rss = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8" ?>',
            '<rss version="2.0">',
            "<channel>",
            f"  <title>{html.escape(config.title)}</title>",
            f"  <link>{html.escape(to_absolute_url(config.site_url, config.base_path, '/'))}</link>",
            f"  <description>{html.escape(config.description)}</description>",
            f"  <lastBuildDate>{rfc822_date(now)}</lastBuildDate>",
            f"  <language>{html.escape(config.language)}</language>",
            *items,
            "</channel>",
            "</rss>",
        ]
    )
    tree["rss.xml"] = rss


def build_sitemap(tree: SiteTree, posts: list[Post], tags: list[Tag], config: SiteConfig) -> None:
    def loc(pathname: str) -> str:
        return html.escape(to_absolute_url(config.site_url, config.base_path, pathname))

    urls = [f"<url><loc>{loc('/')}</loc></url>"]
    for post in posts:
        urls.append(f"<url><loc>{loc(post_path(post))}</loc><lastmod>{post.date.isoformat()}</lastmod></url>")
    for tag in tags:
        urls.append(f"<url><loc>{loc(tag_path(tag.slug))}</loc></url>")
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            *urls,
            "</urlset>",
        ]
    )
    tree["sitemap.xml"] = sitemap


def build_404(tree: SiteTree, template: str, config: SiteConfig, year: int) -> None:
    home = html.escape(with_base_path(config.base_path, "/"))
    body = (
        "<section><h2>404</h2>"
        f'<p>Page not found. <a href="{home}">Back to home</a></p>'
        "</section>"
    )
    tree["404.html"] = layout(
        template,
        config,
        title="Not Found",
        description="Page not found",
        body=body,
        canonical_path="/404.html",
        noindex=True,
        year=year,
    )


def render_site(
    posts: list[Post],
    config: SiteConfig,
    now: Optional[dt.datetime] = None,
    template: Optional[str] = None,
) -> SiteTree:
    """Render every page, feed and image of the site into an in-memory tree."""
    now = now or dt.datetime.now(dt.timezone.utc)
    template = template if template is not None else read_template()
    tags = build_tag_map(posts)
    tree: SiteTree = {}
    build_posts(tree, template, posts, config, now.year)
    build_index(tree, template, posts, config, now.year)
    build_tags(tree, template, tags, config, now.year)
    build_rss(tree, posts, config, now)
    build_sitemap(tree, posts, tags, config)
    build_404(tree, template, config, now.year)
    return tree
