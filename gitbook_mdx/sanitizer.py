"""In-place removal of non-content noise from a page snapshot."""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, Comment, Tag

from .content import select_main_container

logger = logging.getLogger("gitbook_mdx")

NON_CONTENT_SELECTORS = ("script", "style", "noscript", 'link[rel~="import"]')
PLUGIN_SELECTORS = (
    ".pageview-count",
    ".gitbook-plugin-pageview-count",
    ".hit-counter",
    ".analytics",
    ".ad",
    ".adsbygoogle",
    "#pageview",
    ".page-footer .count",
)
MAIN_NOISE_SELECTORS = "script, style, noscript, .ads, .toc-plugin"
SEARCH_WIDGET_SELECTORS = (
    '[role="search"]',
    ".algolia-autocomplete",
    ".algolia-docsearch",
    ".algolia-search",
    ".search-widget",
    ".search-plugin",
)
COUNT_SELECTORS = ".page-footer .count, .page-footer .pageview-count, .count"

TRACKING_IFRAME = re.compile(r"count|analytics|google-analytics|track|pixel", re.IGNORECASE)
EVENT_ATTRIBUTE = re.compile(r"^on", re.IGNORECASE)
ARIA_ATTRIBUTE = re.compile(r"^aria-", re.IGNORECASE)
DATA_ATTRIBUTE = re.compile(r"^data-")
KEPT_DATA_ATTRIBUTE = re.compile(r"^(data-src|data-href|data-?original)", re.IGNORECASE)
SEARCH_VENDOR = re.compile(r"algolia|docsearch", re.IGNORECASE)
VIEW_COUNT_PATTERNS = (
    re.compile(r"^\d+(\s+views?)?$", re.IGNORECASE),
    re.compile(r"^views?\s*:\s*\d+$", re.IGNORECASE),
)


def _decompose_all(root: Tag, selector: str) -> int:
    removed = 0
    for element in root.select(selector):
        if not element.decomposed:
            element.decompose()
            removed += 1
    return removed


def _remove_tracking_iframes(soup: BeautifulSoup) -> None:
    for iframe in soup.find_all("iframe"):
        if iframe.decomposed:
            continue
        src = iframe.get("src") or ""
        if not src or TRACKING_IFRAME.search(src):
            iframe.decompose()


def _remove_event_handlers(soup: BeautifulSoup) -> None:
    for element in soup.find_all(True):
        for name in list(element.attrs):
            if EVENT_ATTRIBUTE.match(name):
                del element[name]


def _remove_comments(soup: BeautifulSoup) -> None:
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()


def _strip_noise_attributes(root: Tag) -> None:
    elements = [root] + root.find_all(True)
    for element in elements:
        for name in list(element.attrs):
            if ARIA_ATTRIBUTE.match(name):
                del element[name]
            elif DATA_ATTRIBUTE.match(name) and not KEPT_DATA_ATTRIBUTE.match(name):
                del element[name]


def _remove_search_widgets(root: Tag) -> None:
    for selector in SEARCH_WIDGET_SELECTORS:
        for widget in root.select(selector):
            if widget.decomposed:
                continue
            names = " ".join(widget.get("class") or []) + " " + (widget.get("id") or "")
            has_control = widget.select_one("input, textarea, button") is not None
            if has_control or SEARCH_VENDOR.search(names):
                widget.decompose()


def _remove_view_counts(root: Tag) -> None:
    for element in root.select(COUNT_SELECTORS):
        if element.decomposed:
            continue
        text = element.get_text().strip()
        if any(pattern.match(text) for pattern in VIEW_COUNT_PATTERNS):
            element.decompose()


def sanitize_document(soup: BeautifulSoup) -> None:
    """Strip scripts, trackers, handlers, comments and widget noise in place.

    Removal is conservative: search widgets and view counters only go when
    they are unambiguously widgets, so prose mentioning them survives.
    """
    for selector in NON_CONTENT_SELECTORS:
        _decompose_all(soup, selector)
    for selector in PLUGIN_SELECTORS:
        _decompose_all(soup, selector)
    _remove_tracking_iframes(soup)
    _remove_event_handlers(soup)
    _remove_comments(soup)

    main = select_main_container(soup)
    _decompose_all(main, MAIN_NOISE_SELECTORS)
    _strip_noise_attributes(main)

    _remove_search_widgets(soup)
    _remove_view_counts(soup)
    logger.debug("Sanitized document (main container: <%s>)", main.name)
