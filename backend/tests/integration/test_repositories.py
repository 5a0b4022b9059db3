"""
Integration tests for the conditional writes of the SQL repositories.
"""

from datetime import UTC, datetime, timedelta

import pytest

from app.models.crawl_job import CrawlStatus
from app.models.job import JobStatus
from app.repositories.crawls import CreditReservation


@pytest.fixture
async def job(job_repository):
    return await job_repository.create(job_type="bulk_analysis", input_data={}, total_items=4)


@pytest.fixture
async def crawl_job(crawl_repository, seed_project):
    profile, project = await seed_project()
    return await crawl_repository.create_crawl_job(
        project_id=project.id,
        profile_id=profile.id,
        start_url="https://example.com",
        max_pages=3,
        reservation=CreditReservation(credits_needed=3),
    )


class TestJobRepository:
    @pytest.mark.asyncio
    async def test_claim_only_once(self, job_repository, job):
        assert await job_repository.claim(job.id) is True
        assert await job_repository.claim(job.id) is False

        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.PROCESSING
        assert stored.started_at is not None

    @pytest.mark.asyncio
    async def test_progress_only_moves_forward(self, job_repository, job):
        await job_repository.claim(job.id)

        await job_repository.update_progress(job.id, 3)
        await job_repository.update_progress(job.id, 2)
        await job_repository.update_progress(job.id, 9)

        stored = await job_repository.get(job.id)
        assert stored.progress == 3

    @pytest.mark.asyncio
    async def test_progress_ignored_before_claim(self, job_repository, job):
        await job_repository.update_progress(job.id, 2)

        assert (await job_repository.get(job.id)).progress == 0

    @pytest.mark.asyncio
    async def test_complete_sets_progress_to_total(self, job_repository, job):
        await job_repository.claim(job.id)
        await job_repository.update_progress(job.id, 1)

        assert await job_repository.complete(job.id, {"answer": 42}) is True

        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.progress == 4
        assert stored.result_data == {"answer": 42}
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_terminal_job_is_never_rewritten(self, job_repository, job):
        await job_repository.claim(job.id)
        await job_repository.complete(job.id, {"ok": True})

        assert await job_repository.fail(job.id, "too late") is False
        assert await job_repository.complete(job.id, {"ok": False}) is False

        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.error_message is None
        assert stored.result_data == {"ok": True}

    @pytest.mark.asyncio
    async def test_request_cancel_needs_processing_job(self, job_repository, job):
        assert await job_repository.request_cancel(job.id) is False
        assert await job_repository.is_cancel_requested(job.id) is False

        await job_repository.claim(job.id)

        assert await job_repository.request_cancel(job.id) is True
        assert await job_repository.is_cancel_requested(job.id) is True

    @pytest.mark.asyncio
    async def test_fail_stale_jobs(self, job_repository, job):
        waiting = await job_repository.create(job_type="serp_tracking", input_data={})
        await job_repository.claim(job.id)

        failed = await job_repository.fail_stale(
            datetime.now(UTC) + timedelta(hours=1), "Job timed out after 24 hours"
        )

        assert failed == 1
        stale = await job_repository.get(job.id)
        assert stale.status == JobStatus.FAILED
        assert stale.error_message == "Job timed out after 24 hours"
        assert (await job_repository.get(waiting.id)).status == JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_recent_jobs_are_not_stale(self, job_repository, job):
        await job_repository.claim(job.id)

        failed = await job_repository.fail_stale(
            datetime.now(UTC) - timedelta(hours=24), "Job timed out after 24 hours"
        )

        assert failed == 0
        assert (await job_repository.get(job.id)).status == JobStatus.PROCESSING


class TestCrawlRepository:
    @pytest.mark.asyncio
    async def test_progress_only_moves_forward(self, crawl_repository, crawl_job):
        await crawl_repository.update_progress(crawl_job.id, 60, pages_crawled=2, pages_discovered=5)
        await crawl_repository.update_progress(crawl_job.id, 30, pages_crawled=1, pages_discovered=5)

        stored = await crawl_repository.get_crawl_job(crawl_job.id)
        assert stored.progress == 60
        assert stored.pages_crawled == 2

    @pytest.mark.asyncio
    async def test_lifecycle_transitions(self, crawl_repository, crawl_job):
        assert await crawl_repository.mark_completed(crawl_job.id) is False
        assert await crawl_repository.mark_analyzing(crawl_job.id, 90) is True
        assert await crawl_repository.mark_completed(crawl_job.id) is True
        assert await crawl_repository.mark_failed(crawl_job.id, "late failure") is False

        stored = await crawl_repository.get_crawl_job(crawl_job.id)
        assert stored.status == CrawlStatus.COMPLETED
        assert stored.progress == 100
        assert stored.error_message is None

    @pytest.mark.asyncio
    async def test_fail_stale_crawls(self, crawl_repository, crawl_job):
        failed = await crawl_repository.fail_stale(
            datetime.now(UTC) + timedelta(hours=1), "Job timed out after 24 hours"
        )

        assert failed == 1
        stored = await crawl_repository.get_crawl_job(crawl_job.id)
        assert stored.status == CrawlStatus.FAILED
        assert stored.error_message == "Job timed out after 24 hours"
        assert stored.completed_at is not None
