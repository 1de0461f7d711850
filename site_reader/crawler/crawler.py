# === FILE: site_reader/crawler/crawler.py ===
"""
Crawl session: breadth-first traversal of one site with a headless browser.

A session owns its frontier, visited set and browser; nothing but the
launch limiter is shared between sessions. Pages are fetched in batches of
at most ``config.concurrency``; a batch is awaited as a whole before its
results touch the frontier, so no locking is needed.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Deque, Dict, List, Optional, Sequence, Set

from site_reader.config import CrawlerConfig
from site_reader.crawler.browser import BrowserHandle, BrowserLauncher, launch_chromium
from site_reader.crawler.fetcher import PageFetcher
from site_reader.crawler.models import CrawlOutput, PageRecord
from site_reader.exceptions import BrowserLaunchError, InvalidInputError
from site_reader.limiter import LaunchLimiter, get_default_limiter
from site_reader.utils import extract_host, is_same_host, normalize_url, validate_seed_url

__all__ = ("CrawlSession", "SessionState")


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


class CrawlSession:
    """One crawl invocation.

    Usage::

        async with CrawlSession(url, config, limiter=limiter) as session:
            output = await session.crawl()

    or simply ``output = await CrawlSession(...).run()``.
    """

    def __init__(
        self,
        seed_url: str,
        config: Optional[CrawlerConfig] = None,
        *,
        max_pages: Optional[int] = None,
        limiter: Optional[LaunchLimiter] = None,
        launcher: BrowserLauncher = launch_chromium,
        fetcher: Optional[PageFetcher] = None,
    ) -> None:
        self.config = config or CrawlerConfig()
        self.seed_url = validate_seed_url(seed_url)
        self.max_pages = self.config.max_pages if max_pages is None else max_pages
        if self.max_pages < 1:
            raise InvalidInputError("maxPages must be a positive number")
        self.base_host = extract_host(self.seed_url)
        self.limiter = limiter or get_default_limiter(self.config.launch_limit)
        self.launcher = launcher
        self.fetcher = fetcher or PageFetcher(self.config, self.base_host)

        self.frontier: Deque[str] = deque([self.seed_url])
        self.queued: Set[str] = {self.seed_url}
        self.visited: Set[str] = set()
        self.collected: List[PageRecord] = []
        self.documents: Set[str] = set()
        self._emails: Dict[str, None] = {}

        self.state = SessionState.INITIALIZING
        self.browser: Optional[BrowserHandle] = None
        self.logger = logging.getLogger("SiteReader")

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> CrawlSession:
        if self.state is not SessionState.INITIALIZING:
            raise RuntimeError("CrawlSession can only be entered once")
        await self.limiter.acquire()
        try:
            self.browser = await self.launcher(self.config)
        except Exception as exc:
            self.state = SessionState.DONE
            self.limiter.release()
            self.logger.error("Browser launch failed for %s: %s", self.seed_url, exc)
            raise BrowserLaunchError(f"Could not launch browser: {exc}") from exc
        except BaseException:
            self.state = SessionState.DONE
            self.limiter.release()
            raise
        self.state = SessionState.RUNNING
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.state = SessionState.DRAINING
        try:
            await self._close_browser()
        finally:
            self.limiter.release()
            self.state = SessionState.DONE

    async def _close_browser(self) -> None:
        if self.browser is None:
            return
        try:
            await self.browser.close()
        except Exception as exc:
            self.logger.warning("Closing browser for %s failed: %s", self.seed_url, exc)
        finally:
            self.browser = None

    async def run(self) -> CrawlOutput:
        """Acquire resources, crawl, and release everything."""
        async with self:
            return await self.crawl()

    # ------------------------------------------------------------------ #
    # Traversal                                                          #
    # ------------------------------------------------------------------ #

    async def crawl(self) -> CrawlOutput:
        if self.state is not SessionState.RUNNING or self.browser is None:
            raise RuntimeError("CrawlSession is not running; use 'async with' or run()")
        self.logger.info("Starting crawl of %s (max %d pages)", self.seed_url, self.max_pages)
        start = time.monotonic()

        while self.frontier and len(self.collected) < self.max_pages:
            batch = self._next_batch()
            if not batch:
                break
            self.logger.debug("Fetching batch of %d: %s", len(batch), batch)
            results = await asyncio.gather(
                *(self.fetcher.fetch(self.browser, url) for url in batch)
            )
            self._apply(results)

        duration = time.monotonic() - start
        self.logger.info(
            "Finished %s: %d pages in %.2f s (%d left in frontier)",
            self.seed_url,
            len(self.collected),
            duration,
            len(self.frontier),
        )
        return CrawlOutput(pages=list(self.collected), emails=self.emails)

    def _next_batch(self) -> List[str]:
        """Pull URLs off the frontier and mark them visited before dispatch."""
        batch: List[str] = []
        while (
            self.frontier
            and len(batch) < self.config.concurrency
            and len(self.collected) + len(batch) < self.max_pages
        ):
            url = self.frontier.popleft()
            self.queued.discard(url)
            if url in self.visited:
                continue
            self.visited.add(url)
            batch.append(url)
        return batch

    def _apply(self, results: Sequence[Optional[PageRecord]]) -> None:
        for record in results:
            if record is None:
                continue
            document = self._settle_redirect(record)
            if document in self.documents:
                self.logger.debug("Skipping %s: same document as an earlier page", record.url)
                continue
            self.documents.add(document)
            self.collected.append(record)
            for email in record.emails:
                self._emails.setdefault(email, None)
            for link in record.links:
                self._enqueue(link)

    def _settle_redirect(self, record: PageRecord) -> str:
        """Mark the URL a page finally loaded from as visited; return it."""
        loaded = normalize_url(record.loaded_url or record.url)
        if loaded != record.url:
            self.visited.add(loaded)
            if loaded in self.queued:
                self.queued.discard(loaded)
                self.frontier.remove(loaded)
        return loaded

    def _enqueue(self, url: str) -> bool:
        # Budget gate counts collected pages only. Links seen before the budget
        # is reached stay in the frontier even if they will never be fetched.
        if len(self.collected) >= self.max_pages:
            return False
        canonical = normalize_url(url)
        if canonical in self.visited or canonical in self.queued:
            return False
        if not is_same_host(canonical, self.base_host):
            self.logger.debug("Skipping off-site link %s", canonical)
            return False
        self.frontier.append(canonical)
        self.queued.add(canonical)
        return True

    @property
    def emails(self) -> List[str]:
        return list(self._emails)

    def __repr__(self) -> str:
        return (
            f"<CrawlSession {self.seed_url} state={self.state.value} "
            f"collected={len(self.collected)}/{self.max_pages} frontier={len(self.frontier)}>"
        )
