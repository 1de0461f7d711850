# site_reader/crawler/__init__.py
"""Crawl engine: browser boundary, page fetcher and crawl session."""
from site_reader.crawler.crawler import CrawlSession, SessionState
from site_reader.crawler.fetcher import PageFetcher
from site_reader.crawler.models import CrawlOutput, Heading, PageRecord

__all__ = ["CrawlSession", "SessionState", "PageFetcher", "CrawlOutput", "Heading", "PageRecord"]
