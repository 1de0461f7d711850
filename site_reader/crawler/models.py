# site_reader/crawler/models.py
"""
Data models for the SiteReader crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Tuple


@dataclass(slots=True, frozen=True)
class Heading:
    """One ``h1``–``h3`` element: tag level (``"H1"``…) and cleaned text."""

    level: str
    text: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class PageRecord:
    """Cleaned content of one successfully fetched page.

    ``url`` is the canonical URL that was requested; ``loaded_url`` is where
    the browser ended up after redirects.
    """

    url: str
    title: str
    content: str
    headings: Tuple[Heading, ...] = ()
    paragraphs: Tuple[str, ...] = ()
    links: Tuple[str, ...] = ()
    emails: Tuple[str, ...] = ()
    loaded_url: str = ""
    crawled_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "loadedUrl": self.loaded_url or self.url,
            "title": self.title,
            "headings": [{"level": h.level, "text": h.text} for h in self.headings],
            "paragraphs": list(self.paragraphs),
            "content": self.content,
            "crawledAt": self.crawled_at.isoformat(),
        }


@dataclass(slots=True)
class CrawlOutput:
    """What a finished crawl session hands to the aggregator."""

    pages: List[PageRecord] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)

    @property
    def urls(self) -> List[str]:
        return [p.url for p in self.pages]
