# File: tests/conftest.py
from __future__ import annotations

import asyncio
import re
from typing import Dict, List, Optional, Sequence

import pytest
from bs4 import BeautifulSoup

from site_reader.config import CrawlerConfig
from site_reader.limiter import LaunchLimiter

_TITLE_RE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def rendered_text(html: str) -> str:
    """Rough stand-in for ``document.body.innerText``: blocks split by blank lines."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "title"]):
        tag.decompose()
    return soup.get_text("\n\n", strip=True)


class FakePage:
    """Implements the subset of the Playwright page API the fetcher uses."""

    def __init__(self, site: FakeSite, context: FakeContext) -> None:
        self._site = site
        self._context = context
        self._html = ""
        self._text = ""
        self.url = "about:blank"
        self.navigation_timeout: Optional[float] = None

    def set_default_navigation_timeout(self, timeout: float) -> None:
        self.navigation_timeout = timeout

    def set_default_timeout(self, timeout: float) -> None:
        pass

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None):
        self._site.requested.append(url)
        if self._site.delay:
            await asyncio.sleep(self._site.delay)
        if url in self._site.failures:
            raise self._site.failures[url]
        if url not in self._site.pages:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.url = self._site.redirects.get(url, url)
        self._html = self._site.pages[url]
        self._text = self._site.texts.get(url) or rendered_text(self._html)
        return None

    async def wait_for_timeout(self, timeout: float) -> None:
        await asyncio.sleep(0)

    async def title(self) -> str:
        match = _TITLE_RE.search(self._html)
        return match.group(1).strip() if match else ""

    async def evaluate(self, expression: str):
        if self._site.evaluate_error is not None:
            raise self._site.evaluate_error
        return self._text

    async def content(self) -> str:
        return self._html


class FakeContext:
    def __init__(self, site: FakeSite, browser: FakeBrowser) -> None:
        self._site = site
        self._browser = browser
        self.closed = False

    async def new_page(self) -> FakePage:
        return FakePage(self._site, self)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._browser.open_contexts -= 1


class FakeBrowser:
    def __init__(self, site: FakeSite) -> None:
        self._site = site
        self.contexts: List[FakeContext] = []
        self.open_contexts = 0
        self.max_open_contexts = 0
        self.closed = False

    async def new_context(self) -> FakeContext:
        ctx = FakeContext(self._site, self)
        self.contexts.append(ctx)
        self.open_contexts += 1
        self.max_open_contexts = max(self.max_open_contexts, self.open_contexts)
        return ctx

    async def close(self) -> None:
        self.closed = True
        if self._site.close_error is not None:
            raise self._site.close_error


class FakeSite:
    """A website in memory plus a launcher producing browsers that render it."""

    def __init__(self) -> None:
        self.pages: Dict[str, str] = {}
        self.texts: Dict[str, str] = {}
        self.redirects: Dict[str, str] = {}
        self.failures: Dict[str, Exception] = {}
        self.requested: List[str] = []
        self.browsers: List[FakeBrowser] = []
        self.delay: float = 0.0
        self.launch_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None
        self.evaluate_error: Optional[Exception] = None

    def add(self, url: str, body: str = "", *, title: str = "", links: Sequence[str] = (), text: str = "") -> str:
        anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
        self.pages[url] = (
            f"<html><head><title>{title}</title></head>"
            f"<body>{body}{anchors}</body></html>"
        )
        if text:
            self.texts[url] = text
        return url

    async def launch(self, config: CrawlerConfig) -> FakeBrowser:
        await asyncio.sleep(0)
        if self.launch_error is not None:
            raise self.launch_error
        browser = FakeBrowser(self)
        self.browsers.append(browser)
        return browser


@pytest.fixture()
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture()
def crawler_config() -> CrawlerConfig:
    """Fast settings: no settle delay, short timeouts."""
    return CrawlerConfig(max_pages=10, concurrency=3, navigation_timeout=5.0, settle_delay=0.0)


@pytest.fixture()
def limiter() -> LaunchLimiter:
    return LaunchLimiter(2)
