"""Playwright-backed document engine used to load and script pages."""

from __future__ import annotations

import logging
from typing import Any, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .config import BasicAuth
from .errors import NavigationError

logger = logging.getLogger("gitbook_mdx")

DEFAULT_VIEWPORT = {"width": 1280, "height": 800}
LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class BrowserSession:
    """One isolated browser context and page, owned by a single worker."""

    def __init__(self, context: BrowserContext, page: Page, navigation_timeout: float) -> None:
        self._context = context
        self._page = page
        self._navigation_timeout_ms = navigation_timeout * 1000
        self._closed = False

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, wait_until: str = "networkidle") -> None:
        """Navigate to ``url``; failures surface as :class:`NavigationError`."""
        try:
            response = await self._page.goto(
                url,
                wait_until=wait_until,
                timeout=self._navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            raise NavigationError(str(exc), url=url) from exc
        if response is not None and response.status == 401:
            raise NavigationError(f"401 Authorization Required at {url}", url=url)

    async def content(self) -> str:
        return await self._page.content()

    async def title(self) -> str:
        return await self._page.title()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run ``script`` against the live DOM and return its serializable result."""
        return await self._page.evaluate(script, arg)

    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        """Wait for ``selector``; a timeout is reported as ``False``."""
        try:
            await self._page.wait_for_selector(selector, timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            logger.debug("Timed out waiting for %s on %s", selector, self.url)
            return False
        return True

    async def fill(self, selector: str, value: str) -> None:
        await self._page.fill(selector, value)

    async def click(self, selector: str) -> None:
        await self._page.click(selector)

    async def wait_for_load_state(self, state: str = "networkidle") -> None:
        try:
            await self._page.wait_for_load_state(state, timeout=self._navigation_timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(str(exc), url=self.url) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._context.close()
        except PlaywrightError as exc:
            logger.debug("Error while closing session for %s: %s", self._page.url, exc)


class DocumentEngine:
    """Shared Chromium instance handing out isolated sessions."""

    def __init__(self, headless: bool = True, navigation_timeout: float = 30.0) -> None:
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> "DocumentEngine":
        self._playwright = await async_playwright().start()
        logger.debug("Launching Chromium (headless=%s)", self.headless)
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=LAUNCH_ARGS,
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
            self._browser = None
            self._playwright = None

    async def open_session(self, credentials: Optional[BasicAuth] = None) -> BrowserSession:
        """Open a fresh browser context, applying Basic credentials when given."""
        if self._browser is None:
            raise RuntimeError("DocumentEngine must be entered before opening sessions")
        options: dict = {"viewport": DEFAULT_VIEWPORT}
        if credentials is not None:
            options["http_credentials"] = {
                "username": credentials.username,
                "password": credentials.password,
            }
        context = await self._browser.new_context(**options)
        page = await context.new_page()
        page.set_default_navigation_timeout(self.navigation_timeout * 1000)
        page.on("requestfailed", lambda request: logger.debug("Request failed: %s", request.url))
        return BrowserSession(context, page, self.navigation_timeout)
