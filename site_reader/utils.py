# File: site_reader/utils.py
"""site_reader.utils: URL helpers shared by the crawler and the front-ends."""

from __future__ import annotations

from typing import Collection, List, Optional, Sequence
from urllib.parse import urlparse, urlunparse

from site_reader.exceptions import InvalidInputError
from site_reader.logger import logger

__all__: Sequence[str] = (
    "normalize_url",
    "is_same_host",
    "extract_host",
    "validate_seed_url",
    "remove_duplicates",
)

_WEB_SCHEMES = ("http", "https")


def normalize_url(url: str) -> str:
    """Canonical form of *url*: lower-case scheme and host, ``/`` for an empty
    path, fragment removed. The query string is kept."""
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    path = parsed.path or "/"
    return urlunparse((scheme, netloc, path, parsed.params, parsed.query, ""))


def extract_host(url: str) -> str:
    """Host name of *url* in lower case, without port or credentials."""
    return (urlparse(url).hostname or "").lower()


def is_same_host(url: str, base_host: str) -> bool:
    """True for http(s) URLs whose host is exactly *base_host*."""
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except ValueError:
        logger.debug("Unparseable URL skipped: %s", url)
        return False
    return parsed.scheme in _WEB_SCHEMES and host == base_host.lower()


def validate_seed_url(url: Optional[str]) -> str:
    """Return the canonical seed URL or raise InvalidInputError."""
    if not url or not isinstance(url, str):
        raise InvalidInputError("URL is required")
    try:
        parsed = urlparse(url.strip())
        host = parsed.hostname
    except ValueError as exc:
        raise InvalidInputError(f"Invalid URL format: {url}") from exc
    if parsed.scheme.lower() not in _WEB_SCHEMES or not host:
        raise InvalidInputError(f"Invalid URL format: {url}")
    return normalize_url(url)


def remove_duplicates(items: Collection[str]) -> List[str]:
    """Remove duplicates, keeping first-seen order."""
    unique = list(dict.fromkeys(items))
    removed = len(items) - len(unique)
    if removed:
        logger.debug("Removed %d duplicates", removed)
    return unique
