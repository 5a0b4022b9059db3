"""
Page Fetch Service client.

The crawl engine talks to a ``PageFetcher``; the production implementation
calls a Firecrawl-compatible ``/scrape`` endpoint that renders the page and
returns markdown, raw HTML, metadata and outbound links. Any failure for a
single URL surfaces as ``FetchFailure`` so the crawl can skip it.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import FetchFailure
from app.crawling.signals import extract_headings, extract_links

logger = logging.getLogger(__name__)

UNEXPECTED_PAYLOAD = "Fetch service returned an unexpected payload"


@dataclass
class FetchedPage:
    """Result of fetching one URL."""

    url: str
    status_code: int = 200
    title: str = ""
    description: str = ""
    h1: str = ""
    markdown: str = ""
    html: str = ""
    links: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    load_time_ms: int | None = None


class PageFetcher(ABC):
    """Abstract interface for the Page Fetch Service."""

    @abstractmethod
    async def fetch(self, url: str) -> FetchedPage:
        """
        Fetch and extract one page.

        Raises:
            FetchFailure: If the page could not be retrieved
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        return None


class FirecrawlPageFetcher(PageFetcher):
    """
    PageFetcher backed by a Firecrawl-compatible scrape API.

    Example:
        fetcher = FirecrawlPageFetcher()
        page = await fetcher.fetch("https://example.com")
        await fetcher.aclose()
    """

    def __init__(
        self,
        config: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the fetcher.

        Args:
            config: Settings providing the API URL, key and timeout
            client: Pre-built HTTP client (tests pass one with a MockTransport)
        """
        self._config = config or default_settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.FETCH_TIMEOUT_SECONDS, connect=30.0),
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.FIRECRAWL_API_KEY}",
            "Content-Type": "application/json",
        }

    async def fetch(self, url: str) -> FetchedPage:
        body = {
            "url": url,
            "formats": ["markdown", "html", "links"],
            "includeTags": ["meta", "h1", "h2", "h3", "h4", "h5", "h6", "title", "a", "img"],
            "onlyMainContent": False,
        }
        started = time.monotonic()
        try:
            response = await self._client.post(
                self._config.FIRECRAWL_API_URL, json=body, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise FetchFailure(url, f"Request to fetch service failed: {e}", cause=e) from e

        if response.is_error:
            raise FetchFailure(url, f"Fetch service returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchFailure(url, "Fetch service returned invalid JSON", cause=e) from e

        load_time_ms = int((time.monotonic() - started) * 1000)
        return self._to_page(url, payload, load_time_ms)

    @staticmethod
    def _to_page(url: str, payload: dict[str, Any], load_time_ms: int) -> FetchedPage:
        """
        Map a scrape response (with or without the ``data`` envelope) to FetchedPage.

        Title, description and H1 fall back to the markup when metadata omits
        them; links fall back to the markup's anchors when the response has no
        ``links`` list.

        Raises:
            FetchFailure: If the payload does not have the expected shape
        """
        data = payload.get("data", payload) if isinstance(payload, dict) else {}
        if not isinstance(data, dict):
            raise FetchFailure(url, UNEXPECTED_PAYLOAD)

        metadata = data.get("metadata") or {}
        html = data.get("html") or ""
        if not isinstance(metadata, dict) or not isinstance(html, str):
            raise FetchFailure(url, UNEXPECTED_PAYLOAD)

        try:
            status_code = int(metadata.get("statusCode") or 200)
        except (TypeError, ValueError) as e:
            raise FetchFailure(url, UNEXPECTED_PAYLOAD, cause=e) from e

        fallback = extract_headings(html)
        links = data.get("links")
        if not isinstance(links, list):
            links = extract_links(html)

        return FetchedPage(
            url=url,
            status_code=status_code,
            title=_text(metadata.get("title")) or fallback["title"],
            description=_text(metadata.get("description")) or fallback["description"],
            h1=_text(metadata.get("h1")) or fallback["h1"],
            markdown=_text(data.get("markdown")),
            html=html,
            links=[link for link in links if isinstance(link, str)],
            metadata=metadata,
            load_time_ms=load_time_ms,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""
