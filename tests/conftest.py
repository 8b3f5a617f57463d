import asyncio
import base64
from typing import Dict, List, Optional

import pytest
from bs4 import BeautifulSoup

from gitbook_mdx.config import MirrorConfig
from gitbook_mdx.errors import NavigationError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64


def data_url(payload: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(payload).decode("ascii")


class FakeSite:
    """Canned pages, navigation errors and image payloads keyed by URL."""

    def __init__(self) -> None:
        self.pages: Dict[str, str] = {}
        self.errors: Dict[str, str] = {}
        self.images: Dict[str, Optional[str]] = {}
        self.fetches: List[str] = []


class FakeSession:
    def __init__(self, site: FakeSite, engine: "FakeEngine", credentials=None) -> None:
        self.site = site
        self.engine = engine
        self.credentials = credentials
        self.url = "about:blank"
        self.visited: List[str] = []
        self.filled: Dict[str, str] = {}
        self.clicked: List[str] = []
        self.closed = False

    async def goto(self, url: str, wait_until: str = "networkidle") -> None:
        self.visited.append(url)
        await asyncio.sleep(0)
        if url in self.site.errors:
            raise NavigationError(self.site.errors[url], url=url)
        if url not in self.site.pages:
            raise NavigationError(f"net::ERR_NAME_NOT_RESOLVED at {url}", url=url)
        self.url = url

    async def content(self) -> str:
        return self.site.pages.get(self.url, "<html><body></body></html>")

    async def title(self) -> str:
        soup = BeautifulSoup(await self.content(), "html.parser")
        return soup.title.get_text().strip() if soup.title else ""

    async def evaluate(self, script: str, arg=None):
        await asyncio.sleep(0)
        self.site.fetches.append(arg)
        return self.site.images.get(arg)

    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        soup = BeautifulSoup(await self.content(), "html.parser")
        return soup.select_one(selector) is not None

    async def fill(self, selector: str, value: str) -> None:
        self.filled[selector] = value

    async def click(self, selector: str) -> None:
        self.clicked.append(selector)

    async def wait_for_load_state(self, state: str = "networkidle") -> None:
        return None

    async def close(self) -> None:
        self.closed = True
        self.engine.open_count -= 1


class FakeEngine:
    def __init__(self, site: FakeSite) -> None:
        self.site = site
        self.sessions: List[FakeSession] = []
        self.open_count = 0
        self.max_open = 0

    async def open_session(self, credentials=None) -> FakeSession:
        session = FakeSession(self.site, self, credentials)
        self.sessions.append(session)
        self.open_count += 1
        self.max_open = max(self.max_open, self.open_count)
        return session


@pytest.fixture()
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture()
def engine(site) -> FakeEngine:
    return FakeEngine(site)


@pytest.fixture()
def config(tmp_path) -> MirrorConfig:
    return MirrorConfig(output_root=tmp_path / "out", concurrency=2, content_timeout=0.1, login_timeout=0.1)
