"""
Pipeline dependencies for FastAPI routes.

Routes receive repositories, the crawl engine and the job orchestrator
through these providers so tests can swap any of them with
``app.dependency_overrides``.
"""

import logging
from typing import Annotated, AsyncGenerator
from uuid import UUID

from fastapi import Depends, Header

from app.analysis.engine import AnalysisEngine
from app.crawling.engine import CrawlEngine
from app.jobs.handlers import DefaultJobHandlers
from app.jobs.orchestrator import JobOrchestrator
from app.jobs.research import DataForSEOClient
from app.repositories.crawls import CrawlRepository, SqlCrawlRepository
from app.repositories.jobs import JobRepository, SqlJobRepository
from app.services.embedding import OpenAIEmbeddingService
from app.services.task_queue import TaskQueueService, get_task_queue

logger = logging.getLogger(__name__)


async def get_profile_id(
    x_profile_id: Annotated[UUID, Header(alias="X-Profile-ID", description="Caller's profile")],
) -> UUID:
    """
    Identify the calling profile.

    Authentication happens upstream; the gateway forwards the resolved
    profile id in the X-Profile-ID header.
    """
    return x_profile_id


def get_crawl_repository() -> CrawlRepository:
    return SqlCrawlRepository()


def get_job_repository() -> JobRepository:
    return SqlJobRepository()


async def get_crawl_engine(
    crawls: Annotated[CrawlRepository, Depends(get_crawl_repository)],
) -> AsyncGenerator[CrawlEngine, None]:
    """Crawl engine for the request; its HTTP client is closed afterwards."""
    engine = CrawlEngine(crawls=crawls, analysis=AnalysisEngine(crawls))
    try:
        yield engine
    finally:
        await engine.aclose()


async def get_orchestrator(
    jobs: Annotated[JobRepository, Depends(get_job_repository)],
    crawl_engine: Annotated[CrawlEngine, Depends(get_crawl_engine)],
    task_queue: Annotated[TaskQueueService, Depends(get_task_queue)],
) -> AsyncGenerator[JobOrchestrator, None]:
    """Job orchestrator for the request; handlers only run in workers."""
    research = DataForSEOClient()
    embeddings = OpenAIEmbeddingService()
    handlers = DefaultJobHandlers(crawl_engine, research, embeddings)
    try:
        yield JobOrchestrator(jobs=jobs, handlers=handlers.registry(), task_queue=task_queue)
    finally:
        await research.aclose()
        await embeddings.aclose()


ProfileId = Annotated[UUID, Depends(get_profile_id)]
Crawls = Annotated[CrawlRepository, Depends(get_crawl_repository)]
Engine = Annotated[CrawlEngine, Depends(get_crawl_engine)]
Orchestrator = Annotated[JobOrchestrator, Depends(get_orchestrator)]
TaskQueue = Annotated[TaskQueueService, Depends(get_task_queue)]
