"""
Crawl Engine.

``start_crawl`` validates the request, reserves credits and creates the
CrawlJob row; it returns immediately. ``run_crawl`` is executed later by a
worker: it drains a FIFO frontier one page at a time, persists each page
with its links, reports progress (capped at 90 while crawling), then hands
off to the AnalysisEngine and marks the crawl completed.

Per-page fetch failures are skipped. Any other failure marks the crawl
failed and keeps the pages stored so far.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from app.analysis.engine import AnalysisEngine
from app.core.cancellation import CancellationToken, never_cancelled
from app.core.config import Settings, settings as default_settings
from app.core.exceptions import (
    AuditPipelineError,
    CrawlJobNotFound,
    FetchFailure,
    ValidationError,
)
from app.crawling.fetcher import FetchedPage, FirecrawlPageFetcher, PageFetcher
from app.crawling.links import ClassifiedLinks, classify_links, normalize_domain
from app.crawling.signals import count_words, extract_signals
from app.models.crawl_job import CrawlJob, CrawlStatus
from app.observability import crawls_finished_total, fetch_failures_total, pages_crawled_total, tracer
from app.repositories.crawls import CrawlRepository, CreditReservation, SqlCrawlRepository

logger = logging.getLogger(__name__)

# Share of progress reserved for the crawling phase; analysis completes it
CRAWL_PROGRESS_SHARE = 90


@dataclass(frozen=True)
class StartedCrawl:
    crawl_job_id: UUID
    project_id: UUID
    start_url: str
    max_pages: int


@dataclass(frozen=True)
class CrawlOutcome:
    """Terminal state of one run_crawl call."""

    crawl_job_id: UUID
    status: CrawlStatus
    pages_crawled: int = 0
    pages_discovered: int = 0
    overall_score: int | None = None
    total_issues: int | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "crawl_job_id": str(self.crawl_job_id),
            "status": self.status.value,
            "pages_crawled": self.pages_crawled,
            "pages_discovered": self.pages_discovered,
            "overall_score": self.overall_score,
            "total_issues": self.total_issues,
            "error": self.error,
        }


def crawl_progress(pages_crawled: int, page_budget: int) -> int:
    """floor(pages_crawled / page_budget * 90)."""
    return pages_crawled * CRAWL_PROGRESS_SHARE // page_budget


class CrawlEngine:
    """
    Bounded breadth-first website crawler.

    Example:
        engine = CrawlEngine()
        started = await engine.start_crawl(project_id, profile_id, "example.com", 25)
        # later, in a worker
        outcome = await engine.run_crawl(started.crawl_job_id)
    """

    def __init__(
        self,
        crawls: CrawlRepository | None = None,
        fetcher: PageFetcher | None = None,
        analysis: AnalysisEngine | None = None,
        config: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the engine.

        Args:
            crawls: Crawl persistence (defaults to the SQL repository)
            fetcher: Page Fetch Service client
            analysis: Engine invoked once the frontier is drained
            config: Settings providing page caps, pacing and credit terms
            sleep: Pacing primitive (tests pass a no-op)
        """
        self._config = config or default_settings
        self._crawls = crawls or SqlCrawlRepository()
        self._fetcher = fetcher or FirecrawlPageFetcher(self._config)
        self._analysis = analysis or AnalysisEngine(self._crawls)
        self._sleep = sleep

    async def aclose(self) -> None:
        await self._fetcher.aclose()

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    async def start_crawl(
        self,
        project_id: UUID,
        profile_id: UUID,
        domain: str,
        max_pages: int | None = None,
    ) -> StartedCrawl:
        """
        Validate input, reserve credits and create the CrawlJob.

        Raises:
            ValidationError: Bad domain, page budget or project
            ProfileNotFound: Unknown profile
            InsufficientCredits: Metered profile cannot cover max_pages
        """
        if max_pages is None:
            max_pages = self._config.CRAWL_DEFAULT_MAX_PAGES
        if isinstance(max_pages, bool) or not isinstance(max_pages, int) or max_pages < 1:
            raise ValidationError("maxPages must be a positive integer")

        start_url = normalize_domain(domain)
        reservation = CreditReservation(
            credits_needed=max_pages * self._config.CREDITS_PER_PAGE,
            unmetered_plan_types=tuple(self._config.UNMETERED_PLAN_TYPES),
        )
        crawl_job = await self._crawls.create_crawl_job(
            project_id=project_id,
            profile_id=profile_id,
            start_url=start_url,
            max_pages=max_pages,
            reservation=reservation,
        )
        return StartedCrawl(
            crawl_job_id=crawl_job.id,
            project_id=project_id,
            start_url=start_url,
            max_pages=max_pages,
        )

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    async def run_crawl(
        self,
        crawl_job_id: UUID,
        token: CancellationToken | None = None,
    ) -> CrawlOutcome:
        """
        Crawl, analyze and finalize one CrawlJob.

        Stage failures are written to the crawl row and returned as a
        ``failed`` outcome rather than raised.

        Raises:
            CrawlJobNotFound: If the crawl row does not exist
        """
        token = token or never_cancelled()
        crawl_job = await self._crawls.get_crawl_job(crawl_job_id)
        if crawl_job is None:
            raise CrawlJobNotFound(crawl_job_id)
        if crawl_job.status != CrawlStatus.CRAWLING:
            logger.warning(
                "Crawl is not in crawling state, skipping",
                extra={"crawl_job_id": str(crawl_job_id), "status": crawl_job.status.value},
            )
            return _outcome_from_row(crawl_job)

        pages_crawled = 0
        pages_discovered = 0
        with tracer.start_as_current_span("crawl.run") as span:
            span.set_attribute("crawl_job.id", str(crawl_job_id))
            try:
                pages_crawled, pages_discovered = await self._traverse(crawl_job, token)
                await token.raise_if_cancelled("Crawl was cancelled")

                if not await self._crawls.mark_analyzing(crawl_job_id, CRAWL_PROGRESS_SHARE):
                    return await self._superseded(crawl_job_id)
                summary = await self._analysis.analyze(crawl_job_id, crawl_job.project_id, token)
                if not await self._crawls.mark_completed(crawl_job_id):
                    return await self._superseded(crawl_job_id)
            except Exception as e:
                message = e.message if isinstance(e, AuditPipelineError) else (str(e) or "Unknown error")
                logger.error(
                    "Crawl failed",
                    extra={"crawl_job_id": str(crawl_job_id), "error": message},
                    exc_info=not isinstance(e, AuditPipelineError),
                )
                await self._record_failure(crawl_job_id, message)
                crawls_finished_total.labels(status=CrawlStatus.FAILED.value).inc()
                return CrawlOutcome(
                    crawl_job_id=crawl_job_id,
                    status=CrawlStatus.FAILED,
                    pages_crawled=pages_crawled,
                    pages_discovered=pages_discovered,
                    error=message,
                )

        crawls_finished_total.labels(status=CrawlStatus.COMPLETED.value).inc()
        logger.info(
            "Crawl completed",
            extra={
                "crawl_job_id": str(crawl_job_id),
                "pages_crawled": pages_crawled,
                "overall_score": summary.overall_score,
            },
        )
        return CrawlOutcome(
            crawl_job_id=crawl_job_id,
            status=CrawlStatus.COMPLETED,
            pages_crawled=pages_crawled,
            pages_discovered=pages_discovered,
            overall_score=summary.overall_score,
            total_issues=summary.total_issues,
        )

    async def _superseded(self, crawl_job_id: UUID) -> CrawlOutcome:
        """Outcome of a crawl whose row was finished by someone else mid-run."""
        crawl_job = await self._crawls.get_crawl_job(crawl_job_id)
        if crawl_job is None:
            raise CrawlJobNotFound(crawl_job_id)
        logger.warning(
            "Crawl row changed state during the run",
            extra={"crawl_job_id": str(crawl_job_id), "status": crawl_job.status.value},
        )
        return _outcome_from_row(crawl_job)

    async def fail_crawl(self, crawl_job_id: UUID, message: str) -> None:
        """Mark a crawl failed from outside run_crawl (e.g. a job deadline)."""
        await self._record_failure(crawl_job_id, message)
        crawls_finished_total.labels(status=CrawlStatus.FAILED.value).inc()

    async def _record_failure(self, crawl_job_id: UUID, message: str) -> None:
        try:
            await self._crawls.mark_failed(crawl_job_id, message)
        except AuditPipelineError as e:
            # The stale-crawl sweep eventually fails the row
            logger.error(
                "Could not record crawl failure",
                extra={"crawl_job_id": str(crawl_job_id), "error": e.message},
            )

    async def _traverse(self, crawl_job: CrawlJob, token: CancellationToken) -> tuple[int, int]:
        """
        Drain the frontier breadth-first.

        Returns:
            Tuple of (pages_crawled, pages_discovered)
        """
        origin = crawl_job.start_url
        page_budget = min(crawl_job.max_pages, self._config.CRAWL_HARD_PAGE_CAP)
        frontier: deque[str] = deque([origin])
        visited: set[str] = set()
        pages_crawled = 0

        while frontier and pages_crawled < page_budget:
            url = frontier.popleft()
            if url in visited:
                continue
            visited.add(url)

            await token.raise_if_cancelled("Crawl was cancelled")

            try:
                fetched = await self._fetcher.fetch(url)
            except FetchFailure as e:
                fetch_failures_total.inc()
                logger.warning(
                    "Page fetch failed, skipping",
                    extra={"crawl_job_id": str(crawl_job.id), "url": url, "error": e.message},
                )
                await self._sleep(self._config.CRAWL_REQUEST_DELAY_SECONDS)
                continue

            links = classify_links(fetched.links, origin)
            for link in links.internal:
                if link not in visited and len(frontier) < page_budget:
                    frontier.append(link)

            await self._crawls.add_page(
                crawl_job.id,
                self._page_fields(url, fetched, links),
                internal_links=links.internal,
                external_links=links.external[: self._config.CRAWL_EXTERNAL_LINKS_LIMIT],
            )
            pages_crawled += 1
            pages_crawled_total.inc()

            await self._crawls.update_progress(
                crawl_job.id,
                progress=crawl_progress(pages_crawled, page_budget),
                pages_crawled=pages_crawled,
                pages_discovered=len(visited) + len(frontier),
            )
            logger.debug(
                "Page crawled",
                extra={
                    "crawl_job_id": str(crawl_job.id),
                    "url": url,
                    "status_code": fetched.status_code,
                    "pages_crawled": pages_crawled,
                },
            )
            await self._sleep(self._config.CRAWL_REQUEST_DELAY_SECONDS)

        return pages_crawled, len(visited) + len(frontier)

    @staticmethod
    def _page_fields(url: str, fetched: FetchedPage, links: ClassifiedLinks) -> dict[str, Any]:
        """Column values of the CrawledPage row for a fetched page."""
        signals = extract_signals(fetched.html)
        return {
            "url": url,
            "status_code": fetched.status_code,
            "title": fetched.title,
            "meta_description": fetched.description,
            "h1": fetched.h1,
            "content": fetched.markdown,
            "word_count": count_words(fetched.markdown),
            "load_time_ms": fetched.load_time_ms,
            "internal_links_count": len(links.internal),
            "external_links_count": len(links.external),
            "images_count": signals.images_count,
            "images_without_alt": signals.images_without_alt,
            "html_size_bytes": signals.html_size_bytes,
            "has_canonical": signals.has_canonical,
            "canonical_url": signals.canonical_url,
            "meta_robots": signals.meta_robots,
            "has_schema_markup": signals.has_schema_markup,
            "fetch_metadata": fetched.metadata,
        }


def _outcome_from_row(crawl_job: CrawlJob) -> CrawlOutcome:
    return CrawlOutcome(
        crawl_job_id=crawl_job.id,
        status=crawl_job.status,
        pages_crawled=crawl_job.pages_crawled,
        pages_discovered=crawl_job.pages_discovered,
        error=crawl_job.error_message,
    )
