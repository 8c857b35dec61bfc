"""Fetch configured web sources (HTML pages and PDFs) as plain text."""

from __future__ import annotations

import io
import logging
import re
import time
from types import TracebackType

import httpx
from playwright.async_api import Browser, Page, Playwright, async_playwright
from PyPDF2 import PdfReader

from kachisuji.schemas.config import WebSource

logger = logging.getLogger(__name__)

MAX_PAGE_CHARS = 10_000
MAX_PDF_CHARS = 15_000
CACHE_TTL_SECONDS = 60 * 60
USER_AGENT = "Mozilla/5.0 (compatible; KachisujiBot/1.0)"

# Shared across fetcher instances: url -> (fetched_at, text)
_cache: dict[str, tuple[float, str]] = {}

_STRIP_AND_READ_JS = r"""() => {
    document.querySelectorAll('script, style, nav, footer, header, aside').forEach(el => el.remove());
    const main = document.querySelector('main, article, .content, #content') || document.body;
    return main ? main.innerText : '';
}"""


def clear_cache() -> None:
    _cache.clear()


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def is_pdf_url(url: str) -> bool:
    return url.lower().split("?", 1)[0].endswith(".pdf")


class WebFetcher:
    """Playwright Chromium for pages, httpx for PDFs.

    Usage::

        async with WebFetcher() as wf:
            text = await wf.fetch("https://example.com")

    Failures are logged and yield ``""`` so a dead source never blocks
    an exploration.
    """

    def __init__(self, *, ttl_seconds: float = CACHE_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._pw: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> "WebFetcher":
        self._pw = await async_playwright().start()
        self._browser = await self._pw.chromium.launch(headless=True)
        logger.info("Browser launched")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._browser:
            await self._browser.close()
        if self._pw:
            await self._pw.stop()
        logger.info("Browser closed")

    async def _new_page(self) -> Page:
        assert self._browser is not None, "WebFetcher not entered"
        return await self._browser.new_page(user_agent=USER_AGENT)

    def _cached(self, url: str) -> str | None:
        hit = _cache.get(url)
        if hit and time.monotonic() - hit[0] < self.ttl_seconds:
            return hit[1]
        return None

    async def get_page_text(self, url: str) -> str:
        """Main text of a rendered page, chrome stripped, capped at 10k chars."""
        if (cached := self._cached(url)) is not None:
            return cached
        page = await self._new_page()
        try:
            await page.goto(url, wait_until="load", timeout=30_000)
            text = collapse_whitespace(await page.evaluate(_STRIP_AND_READ_JS))[:MAX_PAGE_CHARS]
        except Exception as exc:
            logger.error("Error fetching %s: %s", url, exc)
            text = ""
        finally:
            await page.close()
        _cache[url] = (time.monotonic(), text)
        return text

    async def get_pdf_text(self, url: str) -> str:
        """Extracted text of a PDF, capped at 15k chars."""
        if (cached := self._cached(url)) is not None:
            return cached
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=60) as http:
                response = await http.get(url, headers={"User-Agent": USER_AGENT})
                response.raise_for_status()
            reader = PdfReader(io.BytesIO(response.content))
            text = "\n".join(page.extract_text() or "" for page in reader.pages)[:MAX_PDF_CHARS]
        except Exception as exc:
            logger.error("Error fetching PDF %s: %s", url, exc)
            text = ""
        _cache[url] = (time.monotonic(), text)
        return text

    async def fetch(self, url: str) -> str:
        return await (self.get_pdf_text(url) if is_pdf_url(url) else self.get_page_text(url))

    async def fetch_sources(self, sources: list[WebSource]) -> dict[str, str]:
        """``{source name: text}`` for every source that returned something."""
        texts: dict[str, str] = {}
        for source in sources:
            text = await self.fetch(source.url)
            if text:
                texts[source.name] = text
        return texts


async def fetch_web_texts(sources: list[WebSource]) -> dict[str, str]:
    """Open a browser only when there is something to fetch."""
    if not sources:
        return {}
    async with WebFetcher() as fetcher:
        return await fetcher.fetch_sources(sources)
