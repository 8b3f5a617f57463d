"""Command-line entry point for the GitBook mirror."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Sequence

from .config import DEFAULT_CONCURRENCY, BasicAuth, MirrorConfig
from .crawler import mirror_site
from .errors import PersistenceError

logger = logging.getLogger("gitbook_mdx.cli")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mirror a GitBook-style documentation site into local Markdown files.",
    )
    parser.add_argument("url", help="Site root (whole book) or a single page URL")
    parser.add_argument(
        "--output",
        default="output",
        type=Path,
        help="Directory where Markdown and images should be written",
    )
    parser.add_argument(
        "--all",
        dest="all_pages",
        action="store_true",
        help="Crawl the whole book even when the URL points at a single page",
    )
    parser.add_argument(
        "--no-images",
        dest="download_images",
        action="store_false",
        help="Keep remote image links instead of downloading them",
    )
    parser.add_argument("--username", help="Username for HTTP Basic or form login")
    parser.add_argument("--password", help="Password for HTTP Basic or form login")
    parser.add_argument(
        "--concurrency",
        type=_positive_int,
        default=DEFAULT_CONCURRENCY,
        help="Number of pages processed in parallel",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Show the browser window while crawling",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args(argv)
    if bool(args.username) != bool(args.password):
        parser.error("--username and --password must be given together")
    return args


def build_config(args: argparse.Namespace) -> MirrorConfig:
    auth = BasicAuth(args.username, args.password) if args.username else None
    return MirrorConfig(
        output_root=Path(args.output).resolve(),
        download_images=args.download_images,
        auth=auth,
        concurrency=args.concurrency,
        all_pages=args.all_pages,
        navigation_timeout=args.timeout,
        headless=not args.headful,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    config = build_config(args)
    overall_start = time.perf_counter()
    try:
        result = asyncio.run(mirror_site(args.url, config))
    except PersistenceError as exc:
        logger.error("%s", exc)
        return 1
    total_elapsed = time.perf_counter() - overall_start

    written = len(result.artifacts)
    logger.info(
        "Finished in %.2fs (%d/%d pages written, %d skipped)",
        total_elapsed,
        written,
        written + result.skipped,
        result.skipped,
    )
    if result.skipped:
        logger.warning("%d page(s) were skipped; see the log above for details", result.skipped)
    if result.index_path:
        logger.info("Index written to %s", result.index_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
