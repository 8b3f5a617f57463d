"""Table-of-contents discovery and index rendering."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from .models import PageDescriptor
from .utils import markdown_relative_path

# Modern GitBook first, then the classic sidebar summary.
TOC_CONTAINER_SELECTORS = (
    '[data-testid="table-of-contents"]',
    "ul.summary",
)

_URL_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)


def find_toc_container(soup: BeautifulSoup) -> Optional[Tag]:
    for selector in TOC_CONTAINER_SELECTORS:
        container = soup.select_one(selector)
        if container is not None:
            return container
    return None


def is_navigable_href(href: str) -> bool:
    """Reject empty, bare-fragment and external hrefs."""
    if not href or href == "#":
        return False
    return not _URL_SCHEME.match(href)


def normalize_href(href: str) -> str:
    """Drop a leading ``./`` and force a leading ``/``."""
    if href.startswith("./"):
        href = href[2:]
    if not href.startswith("/"):
        href = "/" + href
    return href


def element_level(link: Tag, container: Tag) -> int:
    """Count list-item ancestors between ``link`` and ``container``."""
    level = 1
    for parent in link.parents:
        if parent is container:
            break
        if parent.name == "li":
            level += 1
    return max(1, level)


def extract_table_of_contents(soup: BeautifulSoup) -> List[PageDescriptor]:
    """Return the page hierarchy in document order, or ``[]`` without a TOC."""
    container = find_toc_container(soup)
    if container is None:
        return []

    descriptors: List[PageDescriptor] = []
    for link in container.select("a[href]"):
        href = (link.get("href") or "").strip()
        if not is_navigable_href(href):
            continue
        descriptors.append(
            PageDescriptor(
                title=link.get_text().strip(),
                url=normalize_href(href),
                level=element_level(link, container),
            )
        )
    return descriptors


def build_index_markdown(
    title: str,
    descriptors: Sequence[PageDescriptor],
    hostname: str,
) -> str:
    """Render the README index mirroring TOC nesting.

    Indentation is relative to the shallowest entry so top-level links start
    at column zero.
    """
    lines = [f"# {title}", "", "## Contents", ""]
    base_level = min((item.level for item in descriptors), default=1)
    for item in descriptors:
        indent = "  " * (item.level - base_level)
        link = markdown_relative_path(item.url, hostname)
        lines.append(f"{indent}- [{item.title}]({link})")
    return "\n".join(lines) + "\n"
