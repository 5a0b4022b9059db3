"""
Unit tests for the Firecrawl-compatible page fetcher.

HTTP traffic goes through httpx.MockTransport.
"""

import json

import httpx
import pytest

from app.core.config import Settings
from app.core.exceptions import FetchFailure
from app.crawling.fetcher import FirecrawlPageFetcher

PAGE_HTML = (
    "<html><head><title>Fallback title</title></head>"
    "<body><h1>Main heading</h1><p>Body</p></body></html>"
)


def make_fetcher(handler) -> FirecrawlPageFetcher:
    config = Settings(FIRECRAWL_API_URL="https://fetch.test/v1/scrape", FIRECRAWL_API_KEY="fc-key")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FirecrawlPageFetcher(config=config, client=client)


class TestFirecrawlPageFetcher:
    """Tests for FirecrawlPageFetcher.fetch."""

    @pytest.mark.asyncio
    async def test_sends_scrape_request(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"markdown": "", "metadata": {}}})

        fetcher = make_fetcher(handler)
        await fetcher.fetch("https://example.com/about")

        assert captured["url"] == "https://fetch.test/v1/scrape"
        assert captured["auth"] == "Bearer fc-key"
        assert captured["body"]["url"] == "https://example.com/about"
        assert captured["body"]["formats"] == ["markdown", "html", "links"]
        assert captured["body"]["onlyMainContent"] is False

    @pytest.mark.asyncio
    async def test_maps_enveloped_response(self):
        payload = {
            "success": True,
            "data": {
                "markdown": "Hello crawl world",
                "html": PAGE_HTML,
                "links": ["https://example.com/a", 42, "/b"],
                "metadata": {
                    "title": "Metadata title",
                    "description": "Metadata description",
                    "statusCode": 404,
                },
            },
        }
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

        page = await fetcher.fetch("https://example.com/missing")

        assert page.url == "https://example.com/missing"
        assert page.status_code == 404
        assert page.title == "Metadata title"
        assert page.description == "Metadata description"
        # Not in metadata, read from the markup instead
        assert page.h1 == "Main heading"
        assert page.markdown == "Hello crawl world"
        assert page.links == ["https://example.com/a", "/b"]
        assert page.metadata["statusCode"] == 404
        assert page.load_time_ms is not None and page.load_time_ms >= 0

    @pytest.mark.asyncio
    async def test_maps_bare_response_and_defaults_status(self):
        payload = {"markdown": "Text", "html": PAGE_HTML, "metadata": {}}
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

        page = await fetcher.fetch("https://example.com")

        assert page.status_code == 200
        assert page.title == "Fallback title"
        assert page.links == []

    @pytest.mark.asyncio
    async def test_http_error_raises_fetch_failure(self):
        fetcher = make_fetcher(lambda request: httpx.Response(500, json={"error": "boom"}))

        with pytest.raises(FetchFailure) as exc_info:
            await fetcher.fetch("https://example.com")

        assert exc_info.value.url == "https://example.com"
        assert "500" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_raises_fetch_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = make_fetcher(handler)

        with pytest.raises(FetchFailure, match="Request to fetch service failed"):
            await fetcher.fetch("https://example.com")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_fetch_failure(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=b"<html>not json"))

        with pytest.raises(FetchFailure, match="invalid JSON"):
            await fetcher.fetch("https://example.com")

    @pytest.mark.asyncio
    async def test_non_object_payload_raises_fetch_failure(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"data": ["x"]}))

        with pytest.raises(FetchFailure, match="unexpected payload"):
            await fetcher.fetch("https://example.com")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [
            {"markdown": "x", "metadata": {"statusCode": "n/a"}},
            {"markdown": "x", "metadata": ["bad"]},
            {"markdown": "x", "html": {"not": "markup"}, "metadata": {}},
        ],
    )
    async def test_malformed_page_payload_raises_fetch_failure(self, data):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"data": data}))

        with pytest.raises(FetchFailure, match="unexpected payload") as exc_info:
            await fetcher.fetch("https://example.com/odd")

        assert exc_info.value.url == "https://example.com/odd"

    @pytest.mark.asyncio
    async def test_links_fall_back_to_markup_anchors(self):
        html = (
            '<html><body><a href="/about">About</a>'
            '<a href=" https://other.com/ ">Out</a><a>No href</a></body></html>'
        )
        payload = {"data": {"markdown": "Text", "html": html, "metadata": {}}}
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

        page = await fetcher.fetch("https://example.com")

        assert page.links == ["/about", "https://other.com/"]

    @pytest.mark.asyncio
    async def test_reported_links_take_precedence_over_markup(self):
        html = '<html><body><a href="/from-markup">x</a></body></html>'
        payload = {"data": {"html": html, "links": [], "metadata": {}}}
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

        page = await fetcher.fetch("https://example.com")

        assert page.links == []

    @pytest.mark.asyncio
    async def test_aclose_keeps_injected_client_open(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        )
        fetcher = FirecrawlPageFetcher(config=Settings(), client=client)

        await fetcher.aclose()

        assert client.is_closed is False
        await client.aclose()
