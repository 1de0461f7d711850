# site_reader/crawler/fetcher.py
"""
Fetcher module: renders one page in the headless browser and turns it into
a cleaned :class:`PageRecord`.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from site_reader.config import CrawlerConfig
from site_reader.crawler.extractor import extract_page
from site_reader.crawler.models import PageRecord
from site_reader.noise_filter import clean
from site_reader.utils import normalize_url

__all__ = ("PageFetcher", "BODY_TEXT_JS")

# innerText keeps the rendered line structure the noise filter relies on
BODY_TEXT_JS = """() => {
  const body = document.body;
  if (!body) return "";
  return body.innerText || body.textContent || "";
}"""


class PageFetcher:
    """Loads pages through a browser handle; failures are reported as ``None``."""

    def __init__(self, config: CrawlerConfig, base_host: str) -> None:
        self.config = config
        self.base_host = base_host
        self.logger = logging.getLogger("SiteReader")

    async def fetch(self, browser: Any, url: str) -> Optional[PageRecord]:
        """
        Render *url* in a new browsing context of *browser*.

        Returns the PageRecord on success, or None on timeout or extraction
        error. The context is closed on every path.
        """
        context = None
        try:
            context = await browser.new_context()
            page = await context.new_page()
            timeout_ms = self.config.navigation_timeout * 1000
            page.set_default_navigation_timeout(timeout_ms)
            page.set_default_timeout(timeout_ms)

            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            if self.config.settle_delay:
                await page.wait_for_timeout(self.config.settle_delay * 1000)

            title = await page.title()
            raw_text = await page.evaluate(BODY_TEXT_JS)
            html = await page.content()
            loaded_url = page.url or url
            return self._build_record(url, loaded_url, title, raw_text or "", html)
        except Exception as exc:
            self.logger.warning("Error processing %s: %s", url, exc)
            return None
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as exc:
                    self.logger.debug("Closing context for %s failed: %s", url, exc)

    def _build_record(
        self, url: str, loaded_url: str, title: str, raw_text: str, html: str
    ) -> PageRecord:
        extracted = extract_page(
            html,
            loaded_url,
            self.base_host,
            with_emails=self.config.extract_emails,
            rendered_text=raw_text,
        )
        content = clean(raw_text)
        self.logger.info("Scraped %s - content length: %d", loaded_url, len(content))
        return PageRecord(
            url=normalize_url(url),
            loaded_url=loaded_url,
            title=title or extracted.title,
            content=content,
            headings=extracted.headings,
            paragraphs=extracted.paragraphs,
            links=extracted.links,
            emails=extracted.emails,
        )
