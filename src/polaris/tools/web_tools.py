"""URL scraping tool for reference material the user points the agent at."""

from __future__ import annotations

import json
import logging
from html.parser import HTMLParser

import httpx

from polaris.config import SCRAPE_MAX_CHARS, SCRAPE_TIMEOUT_SECONDS
from polaris.tools.schemas import ScrapeUrlsArgs

LOGGER = logging.getLogger(__name__)

_SKIPPED_TAGS = frozenset({"script", "style", "noscript", "svg", "head"})
_BLOCK_TAGS = frozenset({"p", "div", "br", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "pre", "section", "article"})


class _TextExtractor(HTMLParser):
    """Collects visible text from an HTML document."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in _SKIPPED_TAGS:
            self._skip_depth += 1
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n")

    def handle_endtag(self, tag):
        if tag in _SKIPPED_TAGS and self._skip_depth:
            self._skip_depth -= 1
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n")

    def handle_data(self, data):
        if not self._skip_depth:
            self._parts.append(data)

    def text(self) -> str:
        lines = (" ".join(line.split()) for line in "".join(self._parts).splitlines())
        return "\n".join(line for line in lines if line)


def html_to_text(html: str) -> str:
    extractor = _TextExtractor()
    extractor.feed(html)
    extractor.close()
    return extractor.text()


class UrlScraper:
    """Fetches pages with httpx and returns their readable text."""

    def __init__(
        self,
        *,
        timeout: float = SCRAPE_TIMEOUT_SECONDS,
        max_chars: int = SCRAPE_MAX_CHARS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_chars = max_chars
        self._transport = transport

    def scrape_urls(self, args: ScrapeUrlsArgs) -> str:
        results: list[dict[str, str]] = []
        with httpx.Client(timeout=self._timeout, follow_redirects=True, transport=self._transport) as client:
            for url in args.urls:
                try:
                    content = self._fetch(client, url)
                except httpx.HTTPError as exc:
                    LOGGER.warning("Scrape failed | url=%s | error=%s", url, exc)
                    results.append({"url": url, "content": f"Error scraping URL: {exc}"})
                    continue
                if content:
                    results.append({"url": url, "content": content})

        if not results:
            return "No content could be scraped from the provided URLs."
        return json.dumps(results, ensure_ascii=False)

    def _fetch(self, client: httpx.Client, url: str) -> str:
        response = client.get(url)
        response.raise_for_status()
        content_type = response.headers.get("content-type", "")
        text = html_to_text(response.text) if "html" in content_type else response.text.strip()
        LOGGER.info("Scraped URL | url=%s | status=%s | chars=%d", url, response.status_code, len(text))
        if len(text) > self._max_chars:
            text = f"{text[: self._max_chars]}\n... [truncated]"
        return text


__all__ = ["UrlScraper", "html_to_text"]
