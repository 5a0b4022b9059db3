"""
Integration tests for the crawl engine against a real (SQLite) database.

The Page Fetch Service is replaced by an in-memory site map.
"""

import json
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import func, select

from app.analysis.engine import AnalysisEngine
from app.core.cancellation import CancellationToken
from app.core.exceptions import FetchFailure, InsufficientCredits, ProfileNotFound, ValidationError
from app.crawling.engine import CrawlEngine
from app.crawling.fetcher import FetchedPage, FirecrawlPageFetcher, PageFetcher
from app.models.crawl_job import CrawlJob, CrawlStatus
from app.models.crawled_page import CrawledPage, ExternalLink, InternalLink
from app.models.profile import Profile

GOOD_HTML = (
    '<html><head><link rel="canonical" href="https://example.com/">'
    '<script type="application/ld+json">{}</script></head>'
    "<body><h1>Heading</h1></body></html>"
)


class FakeSite(PageFetcher):
    """Serves pages from a dict of url -> (status_code, links)."""

    def __init__(self, pages: dict[str, tuple[int, list[str]]], failing: set[str] | None = None):
        self.pages = pages
        self.failing = failing or set()
        self.fetched: list[str] = []

    async def fetch(self, url: str) -> FetchedPage:
        self.fetched.append(url)
        if url in self.failing or url not in self.pages:
            raise FetchFailure(url, "Fetch service returned HTTP 502")
        status_code, links = self.pages[url]
        return FetchedPage(
            url=url,
            status_code=status_code,
            title="A descriptive page title for testing",
            description="D" * 140,
            h1="Heading",
            markdown="word " * 400,
            html=GOOD_HTML,
            links=links,
            load_time_ms=120,
        )


async def no_sleep(seconds: float) -> None:
    return None


def make_engine(crawl_repository, site: PageFetcher, test_settings) -> CrawlEngine:
    return CrawlEngine(
        crawls=crawl_repository,
        fetcher=site,
        analysis=AnalysisEngine(crawl_repository),
        config=test_settings,
        sleep=no_sleep,
    )


async def count_rows(session_factory, model, crawl_job_id) -> int:
    async with session_factory() as session:
        return await session.scalar(
            select(func.count()).select_from(model).where(model.crawl_job_id == crawl_job_id)
        )


class TestStartCrawl:
    """Tests for validation and credit reservation."""

    @pytest.mark.asyncio
    async def test_reserves_credits_and_creates_crawl(
        self, crawl_repository, session_factory, seed_project, test_settings
    ):
        profile, project = await seed_project(credits=10)
        engine = make_engine(crawl_repository, FakeSite({}), test_settings)

        started = await engine.start_crawl(project.id, profile.id, "example.com", 4)

        crawl_job = await crawl_repository.get_crawl_job(started.crawl_job_id)
        assert crawl_job.status == CrawlStatus.CRAWLING
        assert crawl_job.start_url == "https://example.com"
        assert crawl_job.credits_charged == 4
        async with session_factory() as session:
            assert (await session.get(Profile, profile.id)).credits == 6

    @pytest.mark.asyncio
    async def test_insufficient_credits_creates_nothing(
        self, crawl_repository, session_factory, seed_project, test_settings
    ):
        profile, project = await seed_project(credits=3)
        engine = make_engine(crawl_repository, FakeSite({}), test_settings)

        with pytest.raises(InsufficientCredits) as exc_info:
            await engine.start_crawl(project.id, profile.id, "example.com", 5)

        assert exc_info.value.message == "Insufficient credits. You need 5 credits but have 3"
        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(CrawlJob)) == 0
            assert (await session.get(Profile, profile.id)).credits == 3

    @pytest.mark.asyncio
    async def test_unmetered_plan_is_not_charged(
        self, crawl_repository, session_factory, seed_project, test_settings
    ):
        profile, project = await seed_project(plan_type="agency", credits=0)
        engine = make_engine(crawl_repository, FakeSite({}), test_settings)

        started = await engine.start_crawl(project.id, profile.id, "example.com", 500)

        crawl_job = await crawl_repository.get_crawl_job(started.crawl_job_id)
        assert crawl_job.credits_charged == 0
        async with session_factory() as session:
            assert (await session.get(Profile, profile.id)).credits == 0

    @pytest.mark.asyncio
    async def test_default_page_budget(self, crawl_repository, seed_project, test_settings):
        profile, project = await seed_project()
        engine = make_engine(crawl_repository, FakeSite({}), test_settings)

        started = await engine.start_crawl(project.id, profile.id, "example.com")

        assert started.max_pages == test_settings.CRAWL_DEFAULT_MAX_PAGES

    @pytest.mark.parametrize("max_pages", [0, -3, True])
    @pytest.mark.asyncio
    async def test_invalid_page_budget(self, crawl_repository, seed_project, test_settings, max_pages):
        profile, project = await seed_project()
        engine = make_engine(crawl_repository, FakeSite({}), test_settings)

        with pytest.raises(ValidationError, match="maxPages"):
            await engine.start_crawl(project.id, profile.id, "example.com", max_pages)

    @pytest.mark.asyncio
    async def test_project_of_another_profile_rejected(
        self, crawl_repository, seed_project, test_settings
    ):
        _, project = await seed_project()
        other, _ = await seed_project()
        engine = make_engine(crawl_repository, FakeSite({}), test_settings)

        with pytest.raises(ValidationError, match="Project not found"):
            await engine.start_crawl(project.id, other.id, "example.com", 1)

    @pytest.mark.asyncio
    async def test_unknown_profile_rejected(
        self, crawl_repository, session_factory, test_settings
    ):
        from app.models.project import Project

        ghost = uuid4()
        project = Project(id=uuid4(), owner_id=ghost, name="Orphan", domain="example.com")
        async with session_factory() as session:
            async with session.begin():
                session.add(project)
        engine = make_engine(crawl_repository, FakeSite({}), test_settings)

        with pytest.raises(ProfileNotFound):
            await engine.start_crawl(project.id, ghost, "example.com", 1)


class TestRunCrawl:
    """Tests for the breadth-first traversal and hand-off to analysis."""

    async def start(self, engine, seed_project, max_pages=10):
        profile, project = await seed_project(credits=100)
        return await engine.start_crawl(project.id, profile.id, "example.com", max_pages)

    @pytest.mark.asyncio
    async def test_crawls_each_url_once_and_completes(
        self, crawl_repository, session_factory, seed_project, test_settings
    ):
        site = FakeSite(
            {
                "https://example.com": (
                    200,
                    ["/a", "https://example.com/a", "/b", "https://other.com/x", "#top"],
                ),
                "https://example.com/a": (200, ["/b", "/c", "https://example.com"]),
                "https://example.com/b": (200, ["/a"]),
                "https://example.com/c": (200, []),
            }
        )
        engine = make_engine(crawl_repository, site, test_settings)
        started = await self.start(engine, seed_project)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.COMPLETED
        assert outcome.pages_crawled == 4
        assert site.fetched == [
            "https://example.com",
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/c",
        ]
        crawl_job = await crawl_repository.get_crawl_job(started.crawl_job_id)
        assert crawl_job.status == CrawlStatus.COMPLETED
        assert crawl_job.progress == 100
        assert crawl_job.pages_crawled == 4
        assert crawl_job.completed_at is not None

        pages = await crawl_repository.list_pages(started.crawl_job_id)
        assert sorted(p.url for p in pages) == sorted(site.fetched)
        assert await count_rows(session_factory, ExternalLink, started.crawl_job_id) == 1
        assert await count_rows(session_factory, InternalLink, started.crawl_job_id) == 7

        report = await crawl_repository.get_audit(started.crawl_job_id)
        assert report.score is not None
        assert report.score.pages_analyzed == 4

    @pytest.mark.asyncio
    async def test_page_budget_is_never_exceeded(
        self, crawl_repository, seed_project, test_settings
    ):
        links = [f"/page-{i}" for i in range(30)]
        pages = {"https://example.com": (200, links)}
        pages.update({f"https://example.com/page-{i}": (200, links) for i in range(30)})
        site = FakeSite(pages)
        engine = make_engine(crawl_repository, site, test_settings)
        started = await self.start(engine, seed_project, max_pages=5)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.pages_crawled == 5
        assert len(site.fetched) == 5
        assert len(await crawl_repository.list_pages(started.crawl_job_id)) == 5

    @pytest.mark.asyncio
    async def test_seed_error_page_is_stored_and_audited(
        self, crawl_repository, seed_project, test_settings
    ):
        site = FakeSite({"https://example.com": (404, [])})
        engine = make_engine(crawl_repository, site, test_settings)
        started = await self.start(engine, seed_project)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.COMPLETED
        report = await crawl_repository.get_audit(started.crawl_job_id)
        assert "http_error" in {issue.issue_type for issue in report.issues}
        assert report.score.critical_issues >= 1

    @pytest.mark.asyncio
    async def test_fetch_failures_are_skipped(
        self, crawl_repository, seed_project, test_settings
    ):
        site = FakeSite(
            {
                "https://example.com": (200, ["/broken", "/ok"]),
                "https://example.com/ok": (200, []),
            },
            failing={"https://example.com/broken"},
        )
        engine = make_engine(crawl_repository, site, test_settings)
        started = await self.start(engine, seed_project)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.COMPLETED
        assert outcome.pages_crawled == 2
        urls = {p.url for p in await crawl_repository.list_pages(started.crawl_job_id)}
        assert urls == {"https://example.com", "https://example.com/ok"}

    @pytest.mark.asyncio
    async def test_unreachable_site_fails_crawl(
        self, crawl_repository, seed_project, test_settings
    ):
        engine = make_engine(crawl_repository, FakeSite({}), test_settings)
        started = await self.start(engine, seed_project)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.FAILED
        assert outcome.error == "No pages found for analysis"
        crawl_job = await crawl_repository.get_crawl_job(started.crawl_job_id)
        assert crawl_job.status == CrawlStatus.FAILED
        assert crawl_job.error_message == "No pages found for analysis"

    @pytest.mark.asyncio
    async def test_cancelled_crawl_keeps_stored_pages(
        self, crawl_repository, seed_project, test_settings
    ):
        token = CancellationToken()

        class CancellingSite(FakeSite):
            async def fetch(self, url):
                page = await super().fetch(url)
                token.cancel()
                return page

        site = CancellingSite(
            {"https://example.com": (200, ["/a"]), "https://example.com/a": (200, [])}
        )
        engine = make_engine(crawl_repository, site, test_settings)
        started = await self.start(engine, seed_project)

        outcome = await engine.run_crawl(started.crawl_job_id, token)

        assert outcome.status == CrawlStatus.FAILED
        assert outcome.error == "Crawl was cancelled"
        assert len(await crawl_repository.list_pages(started.crawl_job_id)) == 1
        report = await crawl_repository.get_audit(started.crawl_job_id)
        assert report.score is None

    @pytest.mark.asyncio
    async def test_finished_crawl_is_not_rerun(
        self, crawl_repository, seed_project, test_settings
    ):
        site = FakeSite({"https://example.com": (200, [])})
        engine = make_engine(crawl_repository, site, test_settings)
        started = await self.start(engine, seed_project)
        await engine.run_crawl(started.crawl_job_id)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.COMPLETED
        assert site.fetched == ["https://example.com"]

    @pytest.mark.asyncio
    async def test_lookalike_hosts_are_not_crawled(
        self, crawl_repository, session_factory, seed_project, test_settings
    ):
        site = FakeSite(
            {
                "https://example.com": (
                    200,
                    ["https://example.com.evil.net/", "https://example.comstore.io/", "/ok"],
                ),
                "https://example.com/ok": (200, []),
                "https://example.com.evil.net/": (200, []),
                "https://example.comstore.io/": (200, []),
            }
        )
        engine = make_engine(crawl_repository, site, test_settings)
        started = await self.start(engine, seed_project)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.COMPLETED
        assert site.fetched == ["https://example.com", "https://example.com/ok"]
        assert await count_rows(session_factory, ExternalLink, started.crawl_job_id) == 2

    @pytest.mark.asyncio
    async def test_malformed_fetch_payload_skips_only_that_page(
        self, crawl_repository, seed_project, test_settings
    ):
        def handler(request: httpx.Request) -> httpx.Response:
            url = json.loads(request.content)["url"]
            metadata = {"statusCode": "n/a"} if url.endswith("/odd") else {"statusCode": 200}
            return httpx.Response(
                200,
                json={
                    "data": {
                        "markdown": "word " * 400,
                        "html": GOOD_HTML,
                        "links": ["/odd", "/ok"] if url == "https://example.com" else [],
                        "metadata": metadata,
                    }
                },
            )

        fetcher = FirecrawlPageFetcher(
            config=test_settings,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        engine = make_engine(crawl_repository, fetcher, test_settings)
        started = await self.start(engine, seed_project)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.COMPLETED
        assert outcome.pages_crawled == 2
        urls = {p.url for p in await crawl_repository.list_pages(started.crawl_job_id)}
        assert urls == {"https://example.com", "https://example.com/ok"}

    @pytest.mark.asyncio
    async def test_crawl_failed_elsewhere_mid_traversal_stays_failed(
        self, crawl_repository, seed_project, test_settings
    ):
        failed_by_sweep = {}

        class SweptSite(FakeSite):
            async def fetch(self, url):
                await crawl_repository.mark_failed(
                    failed_by_sweep["id"], "Job timed out after 24 hours"
                )
                return await super().fetch(url)

        site = SweptSite({"https://example.com": (200, [])})
        engine = make_engine(crawl_repository, site, test_settings)
        started = await self.start(engine, seed_project)
        failed_by_sweep["id"] = started.crawl_job_id

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.FAILED
        assert outcome.error == "Job timed out after 24 hours"
        crawl_job = await crawl_repository.get_crawl_job(started.crawl_job_id)
        assert crawl_job.status == CrawlStatus.FAILED
        assert crawl_job.error_message == "Job timed out after 24 hours"
        report = await crawl_repository.get_audit(started.crawl_job_id)
        assert report.score is None

    @pytest.mark.asyncio
    async def test_crawl_failed_elsewhere_during_analysis_is_not_completed(
        self, crawl_repository, seed_project, test_settings
    ):
        class SweptAnalysis(AnalysisEngine):
            async def analyze(self, crawl_job_id, project_id, token=None):
                summary = await super().analyze(crawl_job_id, project_id, token)
                await crawl_repository.mark_failed(crawl_job_id, "Job timed out after 24 hours")
                return summary

        engine = CrawlEngine(
            crawls=crawl_repository,
            fetcher=FakeSite({"https://example.com": (200, [])}),
            analysis=SweptAnalysis(crawl_repository),
            config=test_settings,
            sleep=no_sleep,
        )
        started = await self.start(engine, seed_project)

        outcome = await engine.run_crawl(started.crawl_job_id)

        assert outcome.status == CrawlStatus.FAILED
        assert outcome.error == "Job timed out after 24 hours"
        assert outcome.overall_score is None
        crawl_job = await crawl_repository.get_crawl_job(started.crawl_job_id)
        assert crawl_job.status == CrawlStatus.FAILED
