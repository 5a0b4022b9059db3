"""
Research data vendor client.

Job handlers reach keyword, backlink, domain and SERP data through the
``ResearchDataClient`` interface. The production implementation talks to a
DataForSEO-compatible REST API with httpx and paces its calls so that
consecutive requests are at least ``DATAFORSEO_MIN_INTERVAL_SECONDS`` apart.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlparse

import httpx

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import ResearchDataError

logger = logging.getLogger(__name__)


class IntervalPacer:
    """Enforce a minimum interval between calls sharing this pacer."""

    def __init__(self, min_interval: float):
        self._min_interval = min_interval
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    async def wait(self) -> None:
        async with self._lock:
            if self._last_call is not None:
                remaining = self._min_interval - (time.monotonic() - self._last_call)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last_call = time.monotonic()


class ResearchDataClient(ABC):
    """Abstract interface for the research data vendor."""

    @abstractmethod
    async def keyword_metrics(self, keyword: str, location_code: int) -> dict[str, Any] | None:
        """Search volume, difficulty and CPC for one keyword."""
        ...

    @abstractmethod
    async def backlinks(self, domain: str, limit: int = 100) -> list[dict[str, Any]]:
        """Backlinks pointing at a domain."""
        ...

    @abstractmethod
    async def domain_metrics(self, domain: str) -> dict[str, Any] | None:
        """Organic traffic and backlink metrics for a domain."""
        ...

    @abstractmethod
    async def serp_items(self, keyword: str, location_name: str) -> list[dict[str, Any]]:
        """Top organic SERP items for a keyword."""
        ...

    async def aclose(self) -> None:
        return None


class DataForSEOClient(ResearchDataClient):
    """
    ResearchDataClient for a DataForSEO-compatible API.

    DATAFORSEO_API_KEY holds ``login:password`` for HTTP basic auth.
    """

    def __init__(
        self,
        config: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        pacer: IntervalPacer | None = None,
    ):
        self._config = config or default_settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._config.DATAFORSEO_API_URL,
            timeout=httpx.Timeout(self._config.DATAFORSEO_TIMEOUT_SECONDS, connect=30.0),
            auth=self._auth(),
        )
        self._pacer = pacer or IntervalPacer(self._config.DATAFORSEO_MIN_INTERVAL_SECONDS)

    def _auth(self) -> httpx.BasicAuth | None:
        key = self._config.DATAFORSEO_API_KEY
        if not key:
            return None
        login, _, password = key.partition(":")
        return httpx.BasicAuth(login, password)

    async def _post(self, path: str, task: dict[str, Any]) -> dict[str, Any] | None:
        """POST one task and return ``tasks[0].result[0]``."""
        if not self._config.DATAFORSEO_API_KEY:
            raise ResearchDataError("Research data API key not configured")

        await self._pacer.wait()
        try:
            response = await self._client.post(path, json=[task])
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ResearchDataError(
                f"Research data API error: {e.response.status_code}", cause=e
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ResearchDataError(f"Research data request failed: {e}", cause=e) from e

        tasks = payload.get("tasks") or []
        result = (tasks[0].get("result") or []) if tasks else []
        logger.debug("Research data fetched", extra={"path": path, "has_result": bool(result)})
        return result[0] if result else None

    async def keyword_metrics(self, keyword: str, location_code: int) -> dict[str, Any] | None:
        return await self._post(
            "/keywords_data/google_ads/search_volume/live",
            {"keywords": [keyword], "location_code": location_code},
        )

    async def backlinks(self, domain: str, limit: int = 100) -> list[dict[str, Any]]:
        result = await self._post(
            "/backlinks/backlinks/live", {"target": domain, "limit": limit}
        )
        return list((result or {}).get("items") or [])

    async def domain_metrics(self, domain: str) -> dict[str, Any] | None:
        result = await self._post(
            "/dataforseo_labs/google/domain_metrics/live", {"target": domain}
        )
        items = (result or {}).get("items") or []
        return items[0].get("metrics") if items else None

    async def serp_items(self, keyword: str, location_name: str) -> list[dict[str, Any]]:
        result = await self._post(
            "/serp/google/organic/live/advanced",
            {
                "keyword": keyword,
                "location_name": location_name,
                "language_name": "English",
                "device": "desktop",
                "os": "windows",
                "depth": 100,
            },
        )
        return list((result or {}).get("items") or [])

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _result_domain(url: str) -> str:
    return (urlparse(url).hostname or "").replace("www.", "")


def summarize_serp(items: list[dict[str, Any]], keyword: str, domain: str) -> dict[str, Any]:
    """
    Locate ``domain`` in a SERP and collect the competing organic results.

    A result matches when either hostname contains the other. Competitors are
    the non-matching organic results among the first 10 items.
    """
    position = None
    url = None
    competitors = []
    for index, item in enumerate(items):
        if item.get("type") != "organic" or not item.get("url"):
            continue
        result_domain = _result_domain(item["url"])
        if result_domain and (domain in result_domain or result_domain in domain):
            position = item.get("rank_absolute")
            url = item["url"]
        elif index < 10:
            competitors.append({
                "domain": result_domain,
                "url": item["url"],
                "position": item.get("rank_absolute"),
                "title": item.get("title"),
                "description": item.get("description"),
            })

    return {
        "keyword": keyword,
        "domain": domain,
        "position": position,
        "url": url,
        "competitors": competitors,
        "totalResults": len(items),
        "featuredSnippet": any(i.get("type") == "featured_snippet" for i in items),
        "localPack": any(i.get("type") == "local_pack" for i in items),
    }
