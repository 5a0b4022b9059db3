"""
Pipeline context for Celery workers.

Each task run drives async code through ``asyncio.run()``, so the database
engine, HTTP clients and pipeline components are built per run and torn
down when the run ends. ``WorkerContext`` owns that lifecycle.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from app.analysis.engine import AnalysisEngine
from app.core.config import Settings, settings as default_settings
from app.core.database import create_worker_session_factory
from app.crawling.engine import CrawlEngine
from app.crawling.fetcher import FirecrawlPageFetcher
from app.jobs.handlers import DefaultJobHandlers
from app.jobs.orchestrator import JobOrchestrator
from app.jobs.research import DataForSEOClient
from app.repositories.crawls import SqlCrawlRepository
from app.repositories.jobs import SqlJobRepository
from app.services.embedding import OpenAIEmbeddingService
from app.services.task_queue import get_task_queue

logger = logging.getLogger(__name__)


class WorkerContext:
    """
    Async context manager wiring the pipeline for one task run.

    Example:
        async with WorkerContext() as ctx:
            outcome = await ctx.crawl_engine.run_crawl(crawl_job_id)

    The context manager:
    1. Creates an unpooled engine bound to the current event loop
    2. Builds repositories, HTTP clients and engines on top of it
    3. Closes the HTTP clients and disposes the engine on exit
    """

    def __init__(self, config: Settings | None = None):
        self._config = config or default_settings
        self._engine: Optional[AsyncEngine] = None

    async def __aenter__(self) -> "WorkerContext":
        self._engine, session_factory = create_worker_session_factory()

        self.jobs = SqlJobRepository(session_factory)
        self.crawls = SqlCrawlRepository(session_factory)
        self.fetcher = FirecrawlPageFetcher(self._config)
        self.research = DataForSEOClient(self._config)
        self.embeddings = OpenAIEmbeddingService(self._config)

        self.crawl_engine = CrawlEngine(
            crawls=self.crawls,
            fetcher=self.fetcher,
            analysis=AnalysisEngine(self.crawls),
            config=self._config,
        )
        handlers = DefaultJobHandlers(
            crawl_engine=self.crawl_engine,
            research=self.research,
            embeddings=self.embeddings,
            config=self._config,
        )
        self.orchestrator = JobOrchestrator(
            jobs=self.jobs,
            handlers=handlers.registry(),
            task_queue=get_task_queue(),
            config=self._config,
        )
        logger.debug("Worker context entered")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            await self.fetcher.aclose()
            await self.research.aclose()
            await self.embeddings.aclose()
        finally:
            if self._engine is not None:
                await self._engine.dispose()
                self._engine = None
            logger.debug("Worker context closed")
