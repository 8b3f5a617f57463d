"""High-level orchestration for mirroring a documentation site to Markdown."""

from __future__ import annotations

import asyncio
import logging
import posixpath
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from .config import MirrorConfig
from .content import extract_content
from .engine import DocumentEngine
from .errors import NavigationError, PersistenceError
from .images import localize_images
from .markdown import GitBookMarkdownConverter, create_converter, html_to_markdown, normalize_tables
from .models import MirrorResult, OutputArtifact, PageDescriptor
from .navigation import login_with_form, navigate_with_fallback, redact_credentials
from .sanitizer import sanitize_document
from .toc import build_index_markdown, extract_table_of_contents
from .utils import (
    ensure_directory,
    image_directory,
    markdown_relative_path,
    page_relative_path,
    write_text_async,
)

logger = logging.getLogger("gitbook_mdx")

CONTENT_SELECTOR = "main"
INDEX_FILENAME = "README.md"


async def convert_loaded_page(session, converter: GitBookMarkdownConverter) -> str:
    """Snapshot, sanitize, extract and convert the page loaded in ``session``."""
    soup = BeautifulSoup(await session.content(), "html.parser")
    sanitize_document(soup)
    fragment = extract_content(soup, session.url)
    return html_to_markdown(fragment.markup, converter)


async def render_markdown(
    session,
    config: MirrorConfig,
    converter: GitBookMarkdownConverter,
    page_url: str,
    markdown_dir: str,
) -> Tuple[str, List[Path]]:
    """Produce the final Markdown for a loaded page and the images it saved."""
    markdown = await convert_loaded_page(session, converter)
    image_paths: List[Path] = []
    if config.download_images:
        try:
            markdown, references = await localize_images(
                session,
                markdown,
                config.output_root,
                image_directory(page_url),
                markdown_dir,
            )
            image_paths = [ref.destination for ref in references if ref.downloaded and ref.destination]
        except Exception:  # pylint: disable=broad-except
            logger.exception("Image processing failed for %s", redact_credentials(session.url))
    return normalize_tables(markdown), image_paths


async def process_page(
    engine,
    descriptor: PageDescriptor,
    base_url: str,
    config: MirrorConfig,
    converter: GitBookMarkdownConverter,
    hostname: str,
) -> Optional[OutputArtifact]:
    """Fetch, convert and persist a single TOC entry; never raises."""
    page_url = urljoin(base_url, descriptor.url)
    session = None
    try:
        session = await engine.open_session(config.auth)
        try:
            page_url = await navigate_with_fallback(session, page_url, config.auth)
        except NavigationError as exc:
            logger.warning("Skipping %s: navigation failed: %s", redact_credentials(page_url), exc)
            return None

        await session.wait_for_selector(CONTENT_SELECTOR, timeout=config.content_timeout)

        relative_md = markdown_relative_path(descriptor.url, hostname)
        markdown, image_paths = await render_markdown(
            session,
            config,
            converter,
            descriptor.url,
            posixpath.dirname(relative_md),
        )
        if not markdown.strip():
            logger.info("Skipping %s: no content", descriptor.url)
            return None

        output_path = config.output_root / relative_md
        try:
            await write_text_async(output_path, markdown)
        except PersistenceError as exc:
            logger.warning("Skipping %s: %s", descriptor.url, exc)
            return None
        logger.info("Saved %s", output_path)
        return OutputArtifact(descriptor=descriptor, markdown_path=output_path, image_paths=image_paths)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unexpected error processing %s", redact_credentials(page_url))
        return None
    finally:
        if session is not None:
            await session.close()


async def process_pages(
    engine,
    descriptors: Sequence[PageDescriptor],
    base_url: str,
    config: MirrorConfig,
    converter: Optional[GitBookMarkdownConverter] = None,
) -> List[Optional[OutputArtifact]]:
    """Process every descriptor exactly once on a striped worker pool.

    Worker ``w`` handles indices ``w, w + workers, w + 2 * workers, ...``.
    The result list is aligned with ``descriptors``; skipped pages are ``None``.
    """
    total = len(descriptors)
    results: List[Optional[OutputArtifact]] = [None] * total
    if not total:
        return results

    converter = converter or create_converter()
    hostname = urlsplit(base_url).hostname or ""
    workers = min(config.concurrency, total)

    async def worker(start: int) -> None:
        for idx in range(start, total, workers):
            item = descriptors[idx]
            logger.info("Processing page (%d/%d): %s", idx + 1, total, item.title or item.url)
            results[idx] = await process_page(engine, item, base_url, config, converter, hostname)

    await asyncio.gather(*(worker(w) for w in range(workers)))
    return results


async def _write_single_page(
    session,
    page_url: str,
    config: MirrorConfig,
    converter: GitBookMarkdownConverter,
    title: str,
) -> Optional[OutputArtifact]:
    path = urlsplit(page_url).path
    relative = page_relative_path(path)
    basename = posixpath.basename(relative) or "index"
    descriptor = PageDescriptor(title=title, url=path or "/", level=1)

    markdown, image_paths = await render_markdown(session, config, converter, path, "")
    if not markdown.strip():
        logger.info("Skipping %s: no content", redact_credentials(page_url))
        return None
    output_path = config.output_root / f"{basename}.md"
    try:
        await write_text_async(output_path, markdown)
    except PersistenceError as exc:
        logger.warning("Skipping %s: %s", redact_credentials(page_url), exc)
        return None
    logger.info("Saved %s", output_path)
    return OutputArtifact(descriptor=descriptor, markdown_path=output_path, image_paths=image_paths)


async def _mirror_with_engine(url: str, config: MirrorConfig, engine) -> MirrorResult:
    converter = create_converter()
    session = None
    try:
        session = await engine.open_session(config.auth)
        try:
            url = await navigate_with_fallback(session, url, config.auth)
        except NavigationError as exc:
            logger.error("Failed to load %s: %s", redact_credentials(url), exc)
            return MirrorResult(title="", index_path=None, skipped=1)

        if config.auth is not None:
            await login_with_form(session, config.auth, timeout=config.login_timeout)

        await session.wait_for_selector("body", timeout=config.content_timeout)
        title = await session.title()
        logger.info("Processing document: %s", title)

        path = urlsplit(url).path
        has_path = path not in ("", "/")
        if has_path and not config.all_pages:
            artifact = await _write_single_page(session, url, config, converter, title)
            return MirrorResult(
                title=title,
                index_path=None,
                artifacts=[artifact] if artifact else [],
                skipped=0 if artifact else 1,
            )

        logger.info("Resolving table of contents")
        descriptors = extract_table_of_contents(BeautifulSoup(await session.content(), "html.parser"))
        if not descriptors:
            logger.warning("No table of contents found on %s; saving it as a single page", redact_credentials(url))
            artifact = await _write_single_page(session, url, config, converter, title)
            return MirrorResult(
                title=title,
                index_path=None,
                artifacts=[artifact] if artifact else [],
                skipped=0 if artifact else 1,
            )
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unexpected error processing %s", redact_credentials(url))
        return MirrorResult(title="", index_path=None, skipped=1)
    finally:
        if session is not None:
            await session.close()

    hostname = urlsplit(url).hostname or ""
    index_path: Optional[Path] = config.output_root / INDEX_FILENAME
    try:
        await write_text_async(index_path, build_index_markdown(title, descriptors, hostname))
    except PersistenceError as exc:
        logger.warning("Failed to write index: %s", exc)
        index_path = None

    logger.info("Downloading %d page(s) with concurrency %d", len(descriptors), config.concurrency)
    results = await process_pages(engine, descriptors, url, config, converter)
    artifacts = [artifact for artifact in results if artifact is not None]
    return MirrorResult(
        title=title,
        index_path=index_path,
        artifacts=artifacts,
        skipped=len(results) - len(artifacts),
    )


async def mirror_site(url: str, config: MirrorConfig, engine=None) -> MirrorResult:
    """Mirror ``url`` into ``config.output_root``.

    A URL with a sub-path is saved as a single page unless
    ``config.all_pages`` is set; otherwise the site's table of contents drives
    a concurrent crawl and a ``README.md`` index is written. Only failing to
    create the output directory raises.
    """
    ensure_directory(config.output_root)
    start = time.perf_counter()
    if engine is not None:
        result = await _mirror_with_engine(url, config, engine)
    else:
        async with DocumentEngine(
            headless=config.headless,
            navigation_timeout=config.navigation_timeout,
        ) as owned_engine:
            result = await _mirror_with_engine(url, config, owned_engine)
    logger.debug("Mirror of %s finished in %.2fs", redact_credentials(url), time.perf_counter() - start)
    return result
