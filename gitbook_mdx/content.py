"""Main-content selection and fragment extraction from sanitized pages."""

from __future__ import annotations

import html
from typing import Iterable, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from .models import ContentFragment

MAIN_CONTAINER_SELECTORS = (
    "main",
    ".book-body",
    "#book",
    ".page",
    ".page-inner",
    ".content",
    ".markdown-section",
    ".article",
    "#content",
)
SUBTITLE_SELECTORS = (
    "p.subtitle",
    ".subtitle",
    ".description",
    "p.lead",
    ".page-description",
)
BODY_SELECTORS = (
    ".markdown-section",
    ".book-content",
    ".content",
    ".page-inner",
    "article",
    "#content",
)


def select_main_container(soup: BeautifulSoup) -> Tag:
    """Return the main content container, falling back to ``<body>``."""
    for selector in MAIN_CONTAINER_SELECTORS:
        candidate = soup.select_one(selector)
        if candidate is not None:
            return candidate
    return soup.body or soup


def _first_match(selectors: Iterable[str], *scopes: Tag) -> Optional[Tag]:
    for selector in selectors:
        for scope in scopes:
            element = scope.select_one(selector)
            if element is not None:
                return element
    return None


def absolutize_images(root: Tag, page_url: str) -> None:
    """Rewrite protocol- and root-relative ``img`` sources against ``page_url``."""
    parts = urlsplit(page_url)
    scheme = parts.scheme or "http"
    origin = f"{scheme}://{parts.netloc.rpartition('@')[2]}"
    for img in root.find_all("img"):
        src = img.get("src") or ""
        if src.startswith("//"):
            img["src"] = f"{scheme}:{src}"
        elif src.startswith("/"):
            img["src"] = origin + src


def extract_content(soup: BeautifulSoup, page_url: str) -> ContentFragment:
    """Pull title, subtitle and body markup out of a sanitized document."""
    main = select_main_container(soup)

    title = main.find("h1") or soup.find("h1")
    title_markup = str(title) if title is not None else ""

    subtitle_markup = ""
    subtitle = _first_match(SUBTITLE_SELECTORS, main, soup)
    if subtitle is not None:
        text = html.escape(subtitle.get_text().strip(), quote=False)
        subtitle_markup = f'<p class="subtitle">{text}</p>'

    body = _first_match(BODY_SELECTORS, main, soup) or main
    absolutize_images(body, page_url)

    return ContentFragment(
        title_markup=title_markup,
        subtitle_markup=subtitle_markup,
        body_markup=body.decode_contents(),
    )
