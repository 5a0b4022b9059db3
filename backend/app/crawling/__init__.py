"""
Website crawling.

- fetcher: Page Fetch Service client (Firecrawl-compatible scrape API)
- signals: DOM-based SEO signal extraction from raw markup
- links: domain normalization and internal/external link classification
- engine: bounded breadth-first crawl that persists pages and hands off to analysis
"""

from app.crawling.engine import CrawlEngine, CrawlOutcome, StartedCrawl
from app.crawling.fetcher import FetchedPage, FirecrawlPageFetcher, PageFetcher

__all__ = [
    "CrawlEngine",
    "CrawlOutcome",
    "FetchedPage",
    "FirecrawlPageFetcher",
    "PageFetcher",
    "StartedCrawl",
]
