# File: site_reader/engine.py
"""site_reader.engine: the entry point used by the CLI, the HTTP server and the job queue."""

from __future__ import annotations

from typing import Optional

from site_reader.aggregator import CrawlResult, aggregate
from site_reader.config import CrawlerConfig
from site_reader.crawler.browser import BrowserLauncher, launch_chromium
from site_reader.crawler.crawler import CrawlSession
from site_reader.exceptions import InvalidInputError
from site_reader.limiter import LaunchLimiter
from site_reader.logger import logger

__all__ = ["scrape"]


async def scrape(
    url: str,
    max_pages: Optional[int] = None,
    max_length: Optional[int] = None,
    *,
    config: Optional[CrawlerConfig] = None,
    limiter: Optional[LaunchLimiter] = None,
    launcher: BrowserLauncher = launch_chromium,
) -> CrawlResult:
    """
    Crawl *url* and return its aggregated, cleaned text.

    Parameters
    ----------
    url
        Seed URL; only pages on its host are visited.
    max_pages
        Page budget, ``config.max_pages`` when omitted.
    max_length
        Optional character budget for the aggregated text.
    config, limiter, launcher
        Crawl settings, the process launch limiter and the browser launcher.

    Raises
    ------
    InvalidInputError
        The seed URL cannot be parsed or the limits are out of range.
    BrowserLaunchError
        The headless browser could not be started.
    """
    if max_length is not None and max_length < 1:
        raise InvalidInputError("maxLength must be a positive number")

    session = CrawlSession(
        url,
        config,
        max_pages=max_pages,
        limiter=limiter,
        launcher=launcher,
    )
    output = await session.run()
    result = aggregate(output.pages, max_length, output.emails)
    logger.info(
        "Scraped %d pages from %s (%d characters%s)",
        result.pages_scraped,
        session.seed_url,
        result.character_count,
        ", truncated" if result.truncated else "",
    )
    return result
