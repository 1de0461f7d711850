# site_reader/__init__.py
"""
SiteReader package initializer.
Defines package version and exposes the crawl entry point.
"""
__version__ = "0.1.0"

from site_reader.engine import scrape  # noqa: E402

__all__ = ["__version__", "scrape"]
