"""
Celery tasks for website crawls.

``run_crawl_job`` executes the traversal and analysis of a CrawlJob that the
HTTP layer already created (credits reserved, status ``crawling``).
"""

import asyncio
import logging
from uuid import UUID

from celery import shared_task

from app.core.exceptions import AuditPipelineError
from app.worker.context import WorkerContext

logger = logging.getLogger(__name__)


async def _run_crawl(crawl_job_id: UUID) -> dict:
    async with WorkerContext() as ctx:
        outcome = await ctx.crawl_engine.run_crawl(crawl_job_id)
        return outcome.as_dict()


@shared_task(
    bind=True,
    name="app.tasks.crawling.run_crawl_job",
    acks_late=True,
)
def run_crawl_job(self, crawl_job_id: str) -> dict:
    """
    Crawl, analyze and finalize one CrawlJob.

    Stage failures are written to the crawl row by the engine; this task
    never retries.

    Args:
        crawl_job_id: UUID of the crawl job

    Returns:
        dict: Crawl outcome summary
    """
    logger.info(
        "Starting crawl",
        extra={"crawl_job_id": crawl_job_id, "task_id": self.request.id},
    )
    try:
        return asyncio.run(_run_crawl(UUID(crawl_job_id)))
    except AuditPipelineError as e:
        logger.error(
            "Crawl task failed",
            extra={"crawl_job_id": crawl_job_id, "error": e.message},
        )
        return {"crawl_job_id": crawl_job_id, "status": "failed", "error": e.message}
