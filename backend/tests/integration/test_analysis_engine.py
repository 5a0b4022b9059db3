"""
Integration tests for the analysis engine and audit persistence.
"""

import pytest

from app.analysis.engine import AnalysisEngine
from app.core.cancellation import CancellationToken
from app.core.exceptions import JobCancelled, NoPagesFound, PersistenceFailure
from app.models.audit import AuditScore, IssueCategory, IssueSeverity, PageIssue
from app.repositories.crawls import CreditReservation


def page_fields(url: str, **overrides) -> dict:
    fields = {
        "url": url,
        "status_code": 200,
        "title": "A descriptive page title for testing",
        "meta_description": None,
        "h1": "Heading",
        "content": "word " * 250,
        "word_count": 250,
        "load_time_ms": 800,
        "internal_links_count": 1,
        "external_links_count": 0,
        "images_count": 0,
        "images_without_alt": 0,
        "html_size_bytes": 5000,
        "has_canonical": True,
        "has_schema_markup": True,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
async def crawl_with_pages(crawl_repository, seed_project):
    """A crawl holding two stored pages; returns (crawl_job, project)."""
    profile, project = await seed_project(credits=100)
    crawl_job = await crawl_repository.create_crawl_job(
        project_id=project.id,
        profile_id=profile.id,
        start_url="https://example.com",
        max_pages=5,
        reservation=CreditReservation(credits_needed=5),
    )
    await crawl_repository.add_page(
        crawl_job.id, page_fields("https://example.com"), internal_links=[], external_links=[]
    )
    await crawl_repository.add_page(
        crawl_job.id,
        page_fields("https://example.com/slow", load_time_ms=6200, title="Short"),
        internal_links=[],
        external_links=[],
    )
    return crawl_job, project


class TestAnalysisEngine:
    @pytest.mark.asyncio
    async def test_persists_score_issues_and_recommendations(
        self, crawl_repository, crawl_with_pages
    ):
        crawl_job, project = crawl_with_pages

        summary = await AnalysisEngine(crawl_repository).analyze(crawl_job.id, project.id)

        report = await crawl_repository.get_audit(crawl_job.id)
        assert report.score.overall_score == summary.overall_score
        assert report.score.pages_analyzed == 2
        assert report.score.total_issues == len(report.issues) == summary.total_issues
        assert (
            report.score.critical_issues
            + report.score.high_issues
            + report.score.medium_issues
            + report.score.low_issues
        ) == report.score.total_issues
        # Both pages are thin and lack a meta description
        assert {r.title for r in report.recommendations} >= {
            "Add Meta Descriptions",
            "Expand Thin Content Pages",
            "Improve Page Load Speed",
        }
        assert set(report.score.score_breakdown) == {
            "technical", "onpage", "content", "performance", "mobile",
        }

    @pytest.mark.asyncio
    async def test_reanalysis_is_idempotent(self, crawl_repository, crawl_with_pages):
        crawl_job, project = crawl_with_pages
        engine = AnalysisEngine(crawl_repository)

        first = await engine.analyze(crawl_job.id, project.id)
        first_report = await crawl_repository.get_audit(crawl_job.id)
        second = await engine.analyze(crawl_job.id, project.id)
        second_report = await crawl_repository.get_audit(crawl_job.id)

        assert first == second
        assert len(second_report.issues) == len(first_report.issues)
        assert len(second_report.recommendations) == len(first_report.recommendations)
        assert sorted(i.issue_type for i in second_report.issues) == sorted(
            i.issue_type for i in first_report.issues
        )

    @pytest.mark.asyncio
    async def test_no_pages_raises(self, crawl_repository, seed_project):
        profile, project = await seed_project()
        crawl_job = await crawl_repository.create_crawl_job(
            project_id=project.id,
            profile_id=profile.id,
            start_url="https://example.com",
            max_pages=1,
            reservation=CreditReservation(credits_needed=1),
        )

        with pytest.raises(NoPagesFound):
            await AnalysisEngine(crawl_repository).analyze(crawl_job.id, project.id)

    @pytest.mark.asyncio
    async def test_cancelled_analysis_writes_nothing(self, crawl_repository, crawl_with_pages):
        crawl_job, project = crawl_with_pages
        token = CancellationToken()
        token.cancel()

        with pytest.raises(JobCancelled):
            await AnalysisEngine(crawl_repository).analyze(crawl_job.id, project.id, token)

        report = await crawl_repository.get_audit(crawl_job.id)
        assert report.score is None
        assert report.issues == []


class TestAuditAtomicity:
    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_audit(self, crawl_repository, crawl_with_pages):
        crawl_job, project = crawl_with_pages
        await AnalysisEngine(crawl_repository).analyze(crawl_job.id, project.id)
        before = await crawl_repository.get_audit(crawl_job.id)

        broken_issue = PageIssue(
            crawl_job_id=crawl_job.id,
            page_id=None,
            issue_type="missing_h1",
            category=IssueCategory.ON_PAGE,
            severity=IssueSeverity.HIGH,
            title="Missing H1 Tag",
            description="x",
            recommendation="x",
        )
        replacement = AuditScore(
            crawl_job_id=crawl_job.id,
            project_id=project.id,
            overall_score=1,
            technical_score=1,
            onpage_score=1,
            content_score=1,
            performance_score=1,
            mobile_score=1,
            pages_analyzed=2,
            score_breakdown={},
        )

        with pytest.raises(PersistenceFailure, match="store audit results"):
            await crawl_repository.save_analysis(
                crawl_job.id, score=replacement, issues=[broken_issue], recommendations=[]
            )

        after = await crawl_repository.get_audit(crawl_job.id)
        assert after.score.overall_score == before.score.overall_score
        assert len(after.issues) == len(before.issues)
        assert len(after.recommendations) == len(before.recommendations)
