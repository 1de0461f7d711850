# site_reader/crawler/extractor.py
"""
Structured extraction from rendered HTML: headings, paragraphs, same-host
links and e-mail addresses.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple
from urllib.parse import unquote, urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_reader.crawler.models import Heading
from site_reader.noise_filter import clean
from site_reader.utils import is_same_host, normalize_url

__all__ = (
    "ExtractedPage",
    "extract_emails",
    "extract_headings",
    "extract_links",
    "extract_page",
    "extract_paragraphs",
)

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}")
# "logo@2x.png" and friends look like addresses but are asset names
_ASSET_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".avif", ".css", ".js")
_SKIPPED_HREFS = ("mailto:", "javascript:", "tel:", "data:")
_INVISIBLE = ("script", "style", "noscript", "template")


@dataclass(slots=True)
class ExtractedPage:
    title: str
    headings: Tuple[Heading, ...]
    paragraphs: Tuple[str, ...]
    links: Tuple[str, ...]
    emails: Tuple[str, ...]


def _soup(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(list(_INVISIBLE)):
        element.decompose()
    return soup


def _document_base(soup: BeautifulSoup, page_url: str) -> str:
    base = soup.find("base", href=True)
    if isinstance(base, Tag):
        href = base.get("href")
        if isinstance(href, str) and href.strip():
            try:
                return urljoin(page_url, href.strip())
            except ValueError:
                return page_url
    return page_url


def extract_headings(soup: BeautifulSoup) -> List[Heading]:
    """``h1``/``h2``/``h3`` in document order, noise-filtered, empty ones dropped."""
    headings: List[Heading] = []
    for tag in soup.find_all(["h1", "h2", "h3"]):
        text = clean(tag.get_text(" ", strip=True))
        if text:
            headings.append(Heading(level=tag.name.upper(), text=text))
    return headings


def extract_paragraphs(soup: BeautifulSoup) -> List[str]:
    """Text of every ``p`` element, each noise-filtered, empty ones dropped."""
    paragraphs: List[str] = []
    for tag in soup.find_all("p"):
        text = clean(tag.get_text(" ", strip=True))
        if text:
            paragraphs.append(text)
    return paragraphs


def extract_links(soup: BeautifulSoup, page_url: str, base_host: str) -> List[str]:
    """
    Same-host http(s) links in DOM order: resolved against the page URL,
    fragments stripped, duplicates removed.
    """
    base = _document_base(soup, page_url)
    seen: set[str] = set()
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        raw = href_val.strip()
        if not raw or raw.startswith("#") or raw.lower().startswith(_SKIPPED_HREFS):
            continue
        try:
            absolute = urljoin(base, raw)
        except ValueError:
            # e.g. "http://[broken": unparseable hrefs are left out
            continue
        if not is_same_host(absolute, base_host):
            continue
        canonical = normalize_url(absolute)
        if canonical not in seen:
            seen.add(canonical)
            links.append(canonical)
    return links


def _plausible_email(candidate: str) -> bool:
    return not candidate.lower().endswith(_ASSET_SUFFIXES)


def extract_emails(soup: BeautifulSoup, extra_text: Iterable[str] = ()) -> List[str]:
    """Addresses from ``mailto:`` links and visible text, lower-cased, deduplicated."""
    found: List[str] = []
    for tag in soup.find_all("a", href=True):
        href = tag.get("href")
        if isinstance(href, str) and href.lower().startswith("mailto:"):
            address = unquote(urlparse(href).path).split("?", 1)[0]
            found.extend(EMAIL_RE.findall(address))
    found.extend(EMAIL_RE.findall(soup.get_text(" ")))
    for text in extra_text:
        found.extend(EMAIL_RE.findall(text))
    return list(dict.fromkeys(e.lower() for e in found if _plausible_email(e)))


def extract_page(
    html: str,
    page_url: str,
    base_host: str,
    *,
    with_emails: bool = True,
    rendered_text: str = "",
) -> ExtractedPage:
    """Parse *html* once and pull out everything the crawler needs.

    *rendered_text* (the browser's innerText) is searched for addresses too,
    since script-rendered text may be missing from the serialized markup.
    """
    soup = _soup(html)
    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""
    return ExtractedPage(
        title=title,
        headings=tuple(extract_headings(soup)),
        paragraphs=tuple(extract_paragraphs(soup)),
        links=tuple(extract_links(soup, page_url, base_host)),
        emails=tuple(extract_emails(soup, [rendered_text])) if with_emails else (),
    )
