"""
Crawl endpoints.

This router handles the website audit lifecycle:
- Starting a crawl (credit reservation plus enqueue)
- Polling crawl status and progress
- Reading the stored audit (score, issues, recommendations)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, status

from app.api.dependencies.pipeline import Crawls, Engine, ProfileId, TaskQueue
from app.core.exceptions import CrawlJobNotFound, TaskSubmissionFailed
from app.models.crawl_job import CrawlJob
from app.schemas.crawl import (
    AuditResponse,
    AuditScoreResponse,
    CrawlJobResponse,
    PageIssueResponse,
    RecommendationResponse,
    StartCrawlRequest,
    StartCrawlResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/crawls", tags=["crawls"])

CRAWL_NOT_QUEUED = "Crawl could not be queued"


@router.post(
    "",
    response_model=StartCrawlResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a website crawl",
    description=(
        "Validates the request, reserves credits and creates the crawl job. "
        "The traversal and analysis run on a worker; poll the crawl for progress."
    ),
)
async def start_crawl(
    request: StartCrawlRequest,
    profile_id: ProfileId,
    engine: Engine,
    crawls: Crawls,
    task_queue: TaskQueue,
) -> StartCrawlResponse:
    started = await engine.start_crawl(
        project_id=request.project_id,
        profile_id=profile_id,
        domain=request.domain,
        max_pages=request.max_pages,
    )
    try:
        task = task_queue.submit_crawl(started.crawl_job_id)
    except TaskSubmissionFailed:
        await crawls.mark_failed(started.crawl_job_id, CRAWL_NOT_QUEUED)
        raise
    await crawls.set_task_id(started.crawl_job_id, task.task_id)

    logger.info(
        "Crawl started",
        extra={
            "crawl_job_id": str(started.crawl_job_id),
            "profile_id": str(profile_id),
            "start_url": started.start_url,
            "max_pages": started.max_pages,
        },
    )
    return StartCrawlResponse(
        crawl_job_id=started.crawl_job_id,
        message="Crawl started successfully",
    )


async def _get_crawl_or_404(crawls: Crawls, crawl_job_id: UUID) -> CrawlJob:
    crawl_job = await crawls.get_crawl_job(crawl_job_id)
    if crawl_job is None:
        raise CrawlJobNotFound(crawl_job_id)
    return crawl_job


@router.get(
    "/{crawl_job_id}",
    response_model=CrawlJobResponse,
    summary="Get crawl status",
    description="Returns status, progress and page counters of a crawl.",
)
async def get_crawl(crawl_job_id: UUID, crawls: Crawls) -> CrawlJob:
    return await _get_crawl_or_404(crawls, crawl_job_id)


@router.get(
    "/{crawl_job_id}/audit",
    response_model=AuditResponse,
    summary="Get crawl audit",
    description=(
        "Returns the audit score, page issues and recommendations of a crawl. "
        "The score is null until analysis has completed."
    ),
)
async def get_crawl_audit(crawl_job_id: UUID, crawls: Crawls) -> AuditResponse:
    crawl_job = await _get_crawl_or_404(crawls, crawl_job_id)
    report = await crawls.get_audit(crawl_job_id)
    return AuditResponse(
        crawl_job_id=crawl_job.id,
        status=crawl_job.status,
        score=AuditScoreResponse.model_validate(report.score) if report.score else None,
        issues=[PageIssueResponse.model_validate(i) for i in report.issues],
        recommendations=[
            RecommendationResponse.model_validate(r) for r in report.recommendations
        ],
    )
