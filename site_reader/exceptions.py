# site_reader/exceptions.py
"""
Exceptions raised by the SiteReader crawl engine and its front-ends.
"""
from __future__ import annotations


class SiteReaderError(Exception):
    """Base class for all SiteReader errors."""


class InvalidInputError(SiteReaderError, ValueError):
    """Seed URL or crawl limits rejected before any crawl work began."""


class BrowserLaunchError(SiteReaderError):
    """The headless browser for a crawl session could not be started."""


class QueueFullError(SiteReaderError):
    """Too many crawl jobs are waiting; the caller should retry later."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Scrape queue is full ({limit} jobs waiting), try again later")
        self.limit = limit


class JobTimeoutError(SiteReaderError, TimeoutError):
    """A queued crawl job did not finish within the caller's deadline."""

    def __init__(self, job_id: str, timeout: float) -> None:
        super().__init__(f"Job timeout: {job_id} did not finish within {timeout:g} s")
        self.job_id = job_id
        self.timeout = timeout


__all__ = [
    "SiteReaderError",
    "InvalidInputError",
    "BrowserLaunchError",
    "QueueFullError",
    "JobTimeoutError",
]
