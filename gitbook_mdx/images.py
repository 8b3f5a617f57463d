"""Image discovery, in-page downloading and Markdown link rewriting."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import posixpath
import re
import time
import uuid
from pathlib import Path
from typing import List, Optional, Set, Tuple
from urllib.parse import urljoin, urlsplit

from filetype import guess

from .errors import ImageError, PersistenceError
from .models import ImageReference
from .utils import apply_edits, write_bytes_async

logger = logging.getLogger("gitbook_mdx")

IMAGES_DIRNAME = "images"
DEFAULT_EXTENSION = ".png"
MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_CONCURRENT_FETCHES = 6

# Sources may contain one level of balanced parentheses, as in ``a_(1).png``.
IMAGE_PATTERN = re.compile(
    r'!\[(?P<alt>[^\]]*)\]\((?P<src>(?:[^()\s]|\([^()\s]*\))*)(?P<title>\s+"[^"]*")?\)'
)

# Runs inside the page so the site's cookies and session apply to the request.
FETCH_IMAGE_SCRIPT = """
async (src) => {
  try {
    const response = await fetch(src);
    if (!response.ok) return null;
    const blob = await response.blob();
    return await new Promise((resolve) => {
      const reader = new FileReader();
      reader.onloadend = () => resolve(reader.result);
      reader.onerror = () => resolve(null);
      reader.readAsDataURL(blob);
    });
  } catch (error) {
    return null;
  }
}
"""


def resolve_image_url(src: str, page_url: str) -> Optional[str]:
    """Return an absolute URL for ``src`` or ``None`` when it cannot be resolved."""
    try:
        if urlsplit(src).scheme:
            return src
        if page_url:
            return urljoin(page_url, src)
    except ValueError:
        pass
    return None


def url_extension(url: Optional[str]) -> str:
    if not url:
        return ""
    try:
        path = urlsplit(url).path
    except ValueError:
        return ""
    return posixpath.splitext(path)[1].lower()


def detect_image_extension(data: bytes) -> Optional[str]:
    """Detect an image type from its signature; returns ``.ext`` or ``None``."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        return ".jpg" if ext == "jpeg" else f".{ext}"
    return None


def infer_image_extension(mime: Optional[str], data: bytes) -> Optional[str]:
    """Guess an image extension from the payload signature or its declared type.

    Returns ``None`` when the payload is neither recognized nor declared as an
    image, e.g. an HTML error page served with status 200.
    """
    detected = detect_image_extension(data)
    if detected:
        return detected
    major, _, minor = (mime or "").partition("/")
    if major.strip().lower() != "image":
        return None
    minor = minor.split(";")[0].split("+")[0].strip().lower()
    if minor == "jpeg":
        minor = "jpg"
    return f".{minor}" if minor.isalnum() else DEFAULT_EXTENSION


def data_url_mime(data_url: str) -> str:
    header = (data_url or "").partition(",")[0]
    if not header.startswith("data:"):
        return ""
    return header[len("data:"):].split(";")[0].strip().lower()


def decode_data_url(data_url: str) -> bytes:
    header, sep, payload = (data_url or "").partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ImageError("Response is not a base64 data URL")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageError(f"Invalid base64 payload: {exc}") from exc


def _unique_stem(used: Set[str]) -> str:
    while True:
        stem = f"image_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        if stem not in used:
            used.add(stem)
            return stem


def find_image_references(markdown: str, page_url: str, page_dir: str) -> List[ImageReference]:
    """Create one reference per non-inline image occurrence in ``markdown``."""
    references: List[ImageReference] = []
    used: Set[str] = set()
    for match in IMAGE_PATTERN.finditer(markdown):
        src = match.group("src")
        if not src or src.startswith("data:"):
            continue
        resolved = resolve_image_url(src, page_url)
        filename = _unique_stem(used) + url_extension(resolved or src)
        references.append(
            ImageReference(
                original_src=src,
                resolved_absolute_url=resolved,
                local_relative_path=posixpath.join(IMAGES_DIRNAME, page_dir, filename),
                alt_text=match.group("alt"),
                start=match.start(),
                end=match.end(),
            )
        )
    return references


async def fetch_image_bytes(session, url: str) -> Tuple[bytes, str]:
    """Fetch ``url`` within the page context.

    Returns the decoded body and its image extension; payloads that are not
    images raise :class:`ImageError`.
    """
    data_url = await session.evaluate(FETCH_IMAGE_SCRIPT, url)
    if not data_url:
        raise ImageError(f"Fetch returned no data for {url}")
    data = decode_data_url(data_url)
    if len(data) > MAX_IMAGE_BYTES:
        raise ImageError(f"Image larger than {MAX_IMAGE_BYTES} bytes")
    mime = data_url_mime(data_url)
    extension = infer_image_extension(mime, data)
    if extension is None:
        raise ImageError(f"Unsupported image type (Content-Type={mime or 'unknown'})")
    return data, extension


async def _download(
    session,
    reference: ImageReference,
    output_root: Path,
    semaphore: asyncio.Semaphore,
) -> None:
    target = reference.resolved_absolute_url or reference.original_src
    async with semaphore:
        try:
            data, extension = await fetch_image_bytes(session, target)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Failed to fetch image %s: %s", target, exc)
            return

    if not posixpath.splitext(reference.local_relative_path)[1]:
        reference.local_relative_path += extension

    destination = output_root / reference.local_relative_path
    try:
        await write_bytes_async(destination, data)
    except PersistenceError as exc:
        logger.warning("Failed to write image %s: %s", destination, exc)
        return
    reference.destination = destination
    reference.downloaded = True


def rewrite_image_links(
    markdown: str,
    references: List[ImageReference],
    markdown_dir: str = "",
) -> str:
    """Point every downloaded occurrence at its local file, leaving the rest intact."""
    edits = []
    for reference in references:
        if not reference.downloaded:
            continue
        local = posixpath.relpath(reference.local_relative_path, markdown_dir or ".")
        edits.append((reference.start, reference.end, f"![{reference.alt_text}]({local})"))
    return apply_edits(markdown, edits)


async def localize_images(
    session,
    markdown: str,
    output_root: Path,
    page_dir: str,
    markdown_dir: str = "",
) -> Tuple[str, List[ImageReference]]:
    """Download the images referenced by ``markdown`` and rewrite their links.

    ``page_dir`` selects the ``images/`` subdirectory the files land in and
    ``markdown_dir`` is the directory (relative to ``output_root``) of the
    Markdown file the links must resolve from.
    """
    references = find_image_references(markdown, session.url, page_dir)
    if not references:
        return markdown, references

    semaphore = asyncio.Semaphore(MAX_CONCURRENT_FETCHES)
    tasks = [
        asyncio.ensure_future(_download(session, reference, output_root, semaphore))
        for reference in references
    ]
    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()

    downloaded = sum(1 for reference in references if reference.downloaded)
    logger.debug("Localized %d/%d image(s) from %s", downloaded, len(references), session.url)
    return rewrite_image_links(markdown, references, markdown_dir), references
