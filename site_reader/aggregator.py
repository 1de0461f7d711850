# File: site_reader/aggregator.py
"""site_reader.aggregator: joining crawled pages into one text with size accounting."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from site_reader.crawler.models import PageRecord

__all__ = ["CrawlResult", "aggregate", "estimate_tokens", "CHARS_PER_TOKEN", "TRUNCATION_MARKER"]

CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "..."


def estimate_tokens(length: int) -> int:
    """Rough language-model token count: one token per four characters, rounded up."""
    if length <= 0:
        return 0
    return math.ceil(length / CHARS_PER_TOKEN)


@dataclass(slots=True)
class CrawlResult:
    """Aggregated text of a crawl plus the numbers callers budget with."""

    text: str
    pages_scraped: int
    urls: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)
    token_estimate: int = 0
    character_count: int = 0
    truncated: bool = False
    original_token_estimate: Optional[int] = None
    original_character_count: Optional[int] = None

    def to_dict(self, *, include_emails: bool = False) -> Dict[str, Any]:
        """JSON shape shared by the HTTP API and the job queue."""
        data: Dict[str, Any] = {
            "text": self.text,
            "pagesScraped": self.pages_scraped,
            "urls": list(self.urls),
            "tokenEstimate": self.token_estimate,
            "characterCount": self.character_count,
            "truncated": self.truncated,
        }
        if self.truncated:
            data["originalTokenEstimate"] = self.original_token_estimate
            data["originalCharacterCount"] = self.original_character_count
        if include_emails:
            data["emails"] = list(self.emails)
        return data

    def json(self, *, pretty: bool = False, include_emails: bool = True) -> str:
        return json.dumps(
            self.to_dict(include_emails=include_emails),
            ensure_ascii=False,
            indent=2 if pretty else None,
        )


def join_contents(pages: Iterable[PageRecord]) -> str:
    """Non-empty page contents separated by a blank line."""
    return "\n\n".join(p.content for p in pages if p.content).strip()


def aggregate(
    pages: Sequence[PageRecord],
    max_length: Optional[int] = None,
    emails: Iterable[str] = (),
) -> CrawlResult:
    """Build the CrawlResult, cutting the text to *max_length* characters if needed."""
    if max_length is not None and max_length < 1:
        raise ValueError("max_length must be a positive number")

    text = join_contents(pages)
    result = CrawlResult(
        text=text,
        pages_scraped=len(pages),
        urls=[p.url for p in pages],
        emails=list(dict.fromkeys(emails)),
    )

    if max_length is not None and len(text) > max_length:
        result.original_character_count = len(text)
        result.original_token_estimate = estimate_tokens(len(text))
        result.text = text[:max_length] + TRUNCATION_MARKER
        result.truncated = True

    result.character_count = len(result.text)
    result.token_estimate = estimate_tokens(result.character_count)
    return result
