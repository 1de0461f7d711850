# site_reader/crawler/browser.py
"""
Headless browser boundary: launching Chromium through Playwright and
handing out isolated browsing contexts.

The crawler only relies on :class:`BrowserHandle` (``new_context()`` and
``close()``) and on a *launcher* coroutine returning one, so tests can
substitute an in-memory browser.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from site_reader.config import CrawlerConfig

__all__ = ("BrowserHandle", "BrowserLauncher", "launch_chromium")

_log = logging.getLogger("SiteReader")

_CHROMIUM_ARGS = ("--disable-dev-shm-usage", "--no-sandbox")


class BrowserHandle:
    """One running browser owned by a single crawl session."""

    def __init__(
        self,
        browser: Browser,
        playwright: Optional[Playwright] = None,
        *,
        user_agent: Optional[str] = None,
    ) -> None:
        self.browser = browser
        self._playwright = playwright
        self._user_agent = user_agent
        self._closed = False

    async def new_context(self) -> BrowserContext:
        """A fresh context: no cookies or storage shared with other pages."""
        options: dict[str, Any] = {}
        if self._user_agent:
            options["user_agent"] = self._user_agent
        return await self.browser.new_context(**options)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()


BrowserLauncher = Callable[[CrawlerConfig], Awaitable[BrowserHandle]]


async def launch_chromium(config: CrawlerConfig) -> BrowserHandle:
    """Start Playwright and a Chromium instance for one crawl session."""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(
            headless=config.headless,
            args=list(_CHROMIUM_ARGS),
        )
    except BaseException:
        await playwright.stop()
        raise
    _log.debug("Chromium %s launched", browser.version)
    return BrowserHandle(browser, playwright, user_agent=config.user_agent)
