"""
Unit tests for the Celery task entry points.

WorkerContext is replaced by a fake so no database or broker is needed.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from app.core.exceptions import JobNotFound
from app.crawling.engine import CrawlOutcome
from app.jobs.orchestrator import JobRunResult
from app.models.crawl_job import CrawlStatus
from app.models.job import JobStatus
from app.tasks.crawling import run_crawl_job
from app.tasks.jobs import cleanup_stale_jobs, run_job


class FakeWorkerContext:
    def __init__(self):
        self.orchestrator = MagicMock()
        self.orchestrator.run = AsyncMock()
        self.crawl_engine = MagicMock()
        self.crawl_engine.run_crawl = AsyncMock()
        self.jobs = MagicMock()
        self.jobs.fail_stale = AsyncMock(return_value=2)
        self.crawls = MagicMock()
        self.crawls.fail_stale = AsyncMock(return_value=1)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


class TestRunJob:
    def test_returns_run_summary(self):
        ctx = FakeWorkerContext()
        job_id = uuid4()
        ctx.orchestrator.run.return_value = JobRunResult(job_id=job_id, status=JobStatus.COMPLETED)

        with patch("app.tasks.jobs.WorkerContext", return_value=ctx):
            summary = run_job(str(job_id))

        assert summary == {"job_id": str(job_id), "status": "completed", "error": None}
        ctx.orchestrator.run.assert_awaited_once_with(job_id)

    def test_pipeline_error_is_reported(self):
        ctx = FakeWorkerContext()
        job_id = uuid4()
        ctx.orchestrator.run.side_effect = JobNotFound(job_id)

        with patch("app.tasks.jobs.WorkerContext", return_value=ctx):
            summary = run_job(str(job_id))

        assert summary == {"job_id": str(job_id), "status": "failed", "error": "Job not found"}


class TestCleanupStaleJobs:
    def test_fails_stale_jobs_and_crawls(self):
        ctx = FakeWorkerContext()

        with patch("app.tasks.jobs.WorkerContext", return_value=ctx):
            summary = cleanup_stale_jobs()

        assert summary == {"jobs_failed": 2, "crawls_failed": 1}
        older_than, message = ctx.jobs.fail_stale.await_args.args
        assert message == "Job timed out after 24 hours"
        assert ctx.crawls.fail_stale.await_args.args == (older_than, message)


class TestRunCrawlJob:
    def test_returns_crawl_outcome(self):
        ctx = FakeWorkerContext()
        crawl_job_id = uuid4()
        ctx.crawl_engine.run_crawl.return_value = CrawlOutcome(
            crawl_job_id=crawl_job_id,
            status=CrawlStatus.COMPLETED,
            pages_crawled=3,
            pages_discovered=4,
            overall_score=88,
            total_issues=5,
        )

        with patch("app.tasks.crawling.WorkerContext", return_value=ctx):
            summary = run_crawl_job(str(crawl_job_id))

        assert summary["status"] == "completed"
        assert summary["overall_score"] == 88
        ctx.crawl_engine.run_crawl.assert_awaited_once_with(crawl_job_id)
