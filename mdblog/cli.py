from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .build import build_site
from .checks import check_deployed, find_broken_links
from .config import MODES, load_site_config
from .errors import ConfigError, SiteError
from .server import PreviewServer
from .watch import run_dev

logger = logging.getLogger("mdblog")


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(level)


def site_overrides(args: argparse.Namespace) -> dict:
    keys = ("site_url", "base_path", "author", "content_dir", "public_dir", "output_dir", "mode", "host", "port")
    return {key: getattr(args, key, None) for key in keys}


def cmd_build(args: argparse.Namespace) -> int:
    config = load_site_config(Path(args.config), overrides=site_overrides(args))
    result = build_site(config)
    print(f"Site generated in: {result.output_dir}")
    return 0


def cmd_dev(args: argparse.Namespace) -> int:
    run_dev(Path(args.config), overrides=site_overrides(args))
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    overrides = dict(site_overrides(args), mode="development")
    config = load_site_config(Path(args.config), overrides=overrides)
    preview = PreviewServer(config.output_dir, config.base_path, config.host, config.port)
    try:
        preview.serve_forever()
    except KeyboardInterrupt:
        print("\nReceived SIGINT. Closing preview server...")
    finally:
        preview.shutdown()
    return 0


def cmd_check_links(args: argparse.Namespace) -> int:
    overrides = dict(site_overrides(args), mode="development")
    config = load_site_config(Path(args.config), overrides=overrides)
    if not config.output_dir.is_dir():
        raise ConfigError(f"Output directory not found: {config.output_dir}. Run the build first.")
    broken, scanned = find_broken_links(config.output_dir, config.base_path)
    if broken:
        print("Broken internal links detected:", file=sys.stderr)
        for item in broken:
            print(f"- {item.file}: {item.link}", file=sys.stderr)
        return 1
    print(f"Link check passed: {scanned} HTML files")
    return 0


def cmd_check_deployed(args: argparse.Namespace) -> int:
    overrides = dict(site_overrides(args), mode="development")
    config = load_site_config(Path(args.config), overrides=overrides)
    base_url = (args.url or config.deploy_url).strip()
    if not base_url:
        raise ConfigError("DEPLOY_BASE_URL is required")
    results = check_deployed(base_url)
    for result in results:
        print(f"{'OK' if result.ok else 'NG'} {result.status} {result.url}")
    if any(not result.ok for result in results):
        print("deployed URL check failed", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default="site.toml", help="Path to site config file (TOML/YAML/JSON).")
    common.add_argument("--content", dest="content_dir", help="Directory containing Markdown posts.")
    common.add_argument("--public", dest="public_dir", help="Directory copied verbatim into the output.")
    common.add_argument("--output", dest="output_dir", help="Output directory for the site.")
    common.add_argument("--site-url", help="Public site URL used for canonical links, RSS and sitemap.")
    common.add_argument("--base-path", help="Path prefix the site is served under (e.g. /blog).")
    common.add_argument("--author", help="Author name shown in the footer.")
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    server = argparse.ArgumentParser(add_help=False)
    server.add_argument("--host", help="Preview server host.")
    server.add_argument("--port", type=int, help="Preview server port.")

    parser = argparse.ArgumentParser(prog="mdblog", description="Markdown blog generator.")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", parents=[common], help="Generate the site.")
    build.add_argument("--mode", choices=MODES, help="Build mode; drafts are skipped in production.")
    build.set_defaults(func=cmd_build)

    dev = commands.add_parser("dev", parents=[common, server], help="Build, serve with live reload, watch.")
    dev.set_defaults(func=cmd_dev)

    preview = commands.add_parser("preview", parents=[common, server], help="Serve the generated site.")
    preview.set_defaults(func=cmd_preview)

    links = commands.add_parser("check-links", parents=[common], help="Check internal links in the output.")
    links.set_defaults(func=cmd_check_links)

    deployed = commands.add_parser("check-deployed", parents=[common], help="Check a deployed site responds.")
    deployed.add_argument("--url", help="Deployed base URL (defaults to DEPLOY_BASE_URL).")
    deployed.set_defaults(func=cmd_check_deployed)
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    try:
        code = args.func(args)
    except SiteError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
