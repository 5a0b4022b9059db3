"""
Celery tasks for generic jobs.

This module provides tasks for:
- Running a queued Job through the orchestrator
- Failing jobs and crawls stuck past the stale threshold
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from celery import shared_task

from app.core.config import settings
from app.core.exceptions import AuditPipelineError
from app.worker.context import WorkerContext

logger = logging.getLogger(__name__)


async def _run_job(job_id: UUID) -> dict:
    async with WorkerContext() as ctx:
        result = await ctx.orchestrator.run(job_id)
        return result.as_dict()


@shared_task(
    bind=True,
    name="app.tasks.jobs.run_job",
    acks_late=True,
)
def run_job(self, job_id: str) -> dict:
    """
    Execute one job to a terminal status.

    Handler failures are recorded on the job by the orchestrator. Failures
    before dispatch (unknown job, unknown type, database errors) are logged
    and reported in the summary. Jobs are never retried.

    Args:
        job_id: UUID of the job

    Returns:
        dict: Job execution summary
    """
    logger.info("Starting job", extra={"job_id": job_id, "task_id": self.request.id})
    try:
        return asyncio.run(_run_job(UUID(job_id)))
    except AuditPipelineError as e:
        logger.error("Job task failed", extra={"job_id": job_id, "error": e.message})
        return {"job_id": job_id, "status": "failed", "error": e.message}


async def _cleanup(older_than: datetime, message: str) -> dict:
    async with WorkerContext() as ctx:
        jobs = await ctx.jobs.fail_stale(older_than, message)
        crawls = await ctx.crawls.fail_stale(older_than, message)
        return {"jobs_failed": jobs, "crawls_failed": crawls}


@shared_task(name="app.tasks.jobs.cleanup_stale_jobs")
def cleanup_stale_jobs() -> dict:
    """
    Fail jobs and crawls running longer than STALE_JOB_HOURS.

    A worker that died mid-run leaves its row in processing, crawling or
    analyzing; nothing else would ever move it to a terminal status.

    Returns:
        dict: Cleanup summary
    """
    hours = settings.STALE_JOB_HOURS
    older_than = datetime.now(UTC) - timedelta(hours=hours)
    message = f"Job timed out after {hours} hours"

    logger.info("Starting stale job cleanup", extra={"older_than": older_than.isoformat()})
    summary = asyncio.run(_cleanup(older_than, message))
    if summary["jobs_failed"] or summary["crawls_failed"]:
        logger.warning("Marked stale jobs as failed", extra=summary)
    return summary
