"""Utility helpers for path handling, file writes and text edits."""

from __future__ import annotations

import asyncio
import posixpath
from pathlib import Path
from typing import Iterable, Tuple
from urllib.parse import urlsplit

from .errors import PersistenceError

Edit = Tuple[int, int, str]


def page_relative_path(url: str) -> str:
    """Return the site-relative path of a TOC url without slashes, query or fragment."""
    path = urlsplit(url).path
    segments = [part for part in path.split("/") if part not in ("", ".", "..")]
    return "/".join(segments)


def markdown_relative_path(url: str, hostname: str) -> str:
    """Map a TOC url to the Markdown file path it is written to.

    The site root maps to ``<hostname>.md``; every other page mirrors the
    site's directory structure.
    """
    relative = page_relative_path(url)
    if not relative:
        return f"{hostname or 'index'}.md"
    return f"{relative}.md"


def image_directory(page_url: str) -> str:
    """Image subdirectory mirroring the page's own directory."""
    return posixpath.dirname(page_relative_path(page_url))


def ensure_directory(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise PersistenceError(f"Failed to create directory {path}: {exc}") from exc
    return path


async def write_text_async(path: Path, text: str) -> Path:
    """Write UTF-8 ``text`` off the event loop, creating parent directories."""
    ensure_directory(path.parent)
    try:
        await asyncio.to_thread(path.write_text, text, encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Failed to write {path}: {exc}") from exc
    return path


async def write_bytes_async(path: Path, data: bytes) -> Path:
    """Write binary data without blocking the event loop."""
    ensure_directory(path.parent)
    try:
        await asyncio.to_thread(path.write_bytes, data)
    except OSError as exc:
        raise PersistenceError(f"Failed to write {path}: {exc}") from exc
    return path


def apply_edits(text: str, edits: Iterable[Edit]) -> str:
    """Replace non-overlapping ``(start, end, replacement)`` spans in one pass."""
    pieces = []
    cursor = 0
    for start, end, replacement in sorted(edits, key=lambda edit: edit[0]):
        if start < cursor:
            raise ValueError(f"Overlapping edit at offset {start}")
        pieces.append(text[cursor:start])
        pieces.append(replacement)
        cursor = end
    pieces.append(text[cursor:])
    return "".join(pieces)
