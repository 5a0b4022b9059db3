"""
Job handlers, one per job type.

A handler is an async callable taking a ``JobContext`` and returning the
JSON-serializable ``result_data`` of the job. Handlers raise to fail the job;
the orchestrator records the message. Progress is reported through
``context.report_progress`` and cancellation is honoured through
``context.token``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from app.core.cancellation import CancellationToken
from app.core.config import Settings, settings as default_settings
from app.core.exceptions import (
    AuditPipelineError,
    JobCancelled,
    JobDeadlineExceeded,
    ValidationError,
)
from app.crawling.engine import CrawlEngine
from app.jobs.clustering import cluster_keywords
from app.jobs.research import ResearchDataClient, summarize_serp
from app.models.crawl_job import CrawlStatus
from app.models.job import JobType
from app.services.embedding import EmbeddingService

logger = logging.getLogger(__name__)

ProgressReporter = Callable[[int], Awaitable[None]]

DEFAULT_SERP_LOCATION = "United States"


@dataclass
class JobContext:
    """Everything a handler needs to run one job."""

    job_id: UUID
    input_data: dict[str, Any]
    report_progress: ProgressReporter
    token: CancellationToken
    profile_id: UUID | None = None
    item_timeout: float | None = None


JobHandler = Callable[[JobContext], Awaitable[Any]]


def expected_items(job_type: str, input_data: Mapping[str, Any]) -> int:
    """Number of progress steps a job of this type will report."""
    if job_type == JobType.BULK_ANALYSIS.value:
        return len(_batch_items(input_data))
    if job_type == JobType.COMPETITOR_ANALYSIS.value:
        return 1 + len(input_data.get("competitors") or [])
    return 1


def _batch_items(input_data: Mapping[str, Any]) -> list[Any]:
    items = input_data.get("items")
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    return items


def _require(input_data: Mapping[str, Any], key: str) -> Any:
    value = input_data.get(key)
    if value in (None, "", []):
        raise ValidationError(f"{key} is required")
    return value


def _error_message(error: BaseException) -> str:
    if isinstance(error, AuditPipelineError):
        return error.message
    return str(error) or type(error).__name__


class DefaultJobHandlers:
    """
    Handlers for the built-in job types.

    Example:
        handlers = DefaultJobHandlers(crawl_engine, research, embeddings)
        orchestrator = JobOrchestrator(handlers=handlers.registry())
    """

    def __init__(
        self,
        crawl_engine: CrawlEngine,
        research: ResearchDataClient,
        embeddings: EmbeddingService,
        config: Settings | None = None,
    ):
        self._crawl_engine = crawl_engine
        self._research = research
        self._embeddings = embeddings
        self._config = config or default_settings

    def registry(self) -> dict[str, JobHandler]:
        return {
            JobType.CRAWL.value: self.crawl,
            JobType.KEYWORD_RESEARCH.value: self.keyword_research,
            JobType.KEYWORD_CLUSTERING.value: self.keyword_clustering,
            JobType.COMPETITOR_ANALYSIS.value: self.competitor_analysis,
            JobType.SERP_TRACKING.value: self.serp_tracking,
            JobType.BACKLINKS_ANALYSIS.value: self.backlinks_analysis,
            JobType.BULK_ANALYSIS.value: self.bulk_analysis,
        }

    # ------------------------------------------------------------------
    # Crawl
    # ------------------------------------------------------------------

    async def crawl(self, context: JobContext) -> dict[str, Any]:
        """Start a crawl and run it to completion inside this job."""
        data = context.input_data
        profile_id = data.get("profileId") or context.profile_id
        if profile_id is None:
            raise ValidationError("profileId is required")
        try:
            project_id = UUID(str(_require(data, "projectId")))
            profile_id = UUID(str(profile_id))
        except ValueError as e:
            raise ValidationError("projectId and profileId must be UUIDs", cause=e) from e

        started = await self._crawl_engine.start_crawl(
            project_id=project_id,
            profile_id=profile_id,
            domain=_require(data, "domain"),
            max_pages=data.get("maxPages"),
        )
        try:
            outcome = await self._crawl_engine.run_crawl(started.crawl_job_id, context.token)
        except asyncio.CancelledError:
            # Job deadline hit mid-crawl; do not leave the crawl in crawling
            await self._crawl_engine.fail_crawl(
                started.crawl_job_id, "Crawl exceeded the job deadline"
            )
            raise

        if outcome.status != CrawlStatus.COMPLETED:
            if context.token.cancelled:
                raise JobCancelled(outcome.error or "Crawl was cancelled")
            raise AuditPipelineError(outcome.error or "Crawl failed")
        return outcome.as_dict()

    # ------------------------------------------------------------------
    # Research
    # ------------------------------------------------------------------

    async def keyword_research(self, context: JobContext) -> Any:
        return await self._keyword_metrics(context.input_data)

    async def _keyword_metrics(self, data: Mapping[str, Any]) -> Any:
        keyword = _require(data, "keyword")
        location = data.get("location") or self._config.DEFAULT_LOCATION_CODE
        return await self._research.keyword_metrics(keyword, location)

    async def backlinks_analysis(self, context: JobContext) -> dict[str, Any]:
        return await self._backlinks(context.input_data)

    async def _backlinks(self, data: Mapping[str, Any]) -> dict[str, Any]:
        domain = _require(data, "domain")
        backlinks = await self._research.backlinks(domain)
        return {
            "domain": domain,
            "backlinks_count": len(backlinks),
            "backlinks": backlinks[:10],
        }

    async def competitor_analysis(self, context: JobContext) -> dict[str, Any]:
        data = context.input_data
        domains = [_require(data, "domain"), *(data.get("competitors") or [])]
        results = []
        for domain in domains:
            await context.token.raise_if_cancelled()
            metrics = await self._research.domain_metrics(domain)
            results.append({"domain": domain, "metrics": metrics})
            await context.report_progress(len(results))
        return {"domains_analyzed": len(domains), "results": results}

    async def serp_tracking(self, context: JobContext) -> dict[str, Any]:
        data = context.input_data
        keyword = _require(data, "keyword")
        domain = _require(data, "domain")
        items = await self._research.serp_items(
            keyword, data.get("location") or DEFAULT_SERP_LOCATION
        )
        return summarize_serp(items, keyword, domain)

    async def keyword_clustering(self, context: JobContext) -> dict[str, Any]:
        keywords = [k.strip() for k in context.input_data.get("keywords") or [] if k and k.strip()]
        if not keywords:
            raise ValidationError("No keywords provided")

        embeddings = await self._embeddings.encode_batch(keywords)
        clusters = cluster_keywords(
            keywords, embeddings, threshold=self._config.KEYWORD_CLUSTER_THRESHOLD
        )
        return {
            "clusters": [cluster.as_dict(i) for i, cluster in enumerate(clusters)],
            "totalClusters": len(clusters),
        }

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def bulk_analysis(self, context: JobContext) -> dict[str, Any]:
        """
        Analyze items one at a time, isolating per-item failures.

        Each item is a payload for the single-item analysis named by
        ``analysisType``; a failing or timed-out item is recorded and the
        batch moves on. Progress advances after every item.
        """
        data = context.input_data
        items = _batch_items(data)
        analysis_type = data.get("analysisType")

        results = []
        for index, item in enumerate(items):
            await context.token.raise_if_cancelled()
            try:
                result = await self._run_item(analysis_type, item, context.item_timeout)
                results.append({"item": item, "success": True, "result": result})
            except AuditPipelineError as e:
                results.append({"item": item, "success": False, "error": e.message})
            except Exception as e:
                logger.warning(
                    "Batch item failed",
                    extra={"job_id": str(context.job_id), "item_index": index, "error": str(e)},
                )
                results.append({"item": item, "success": False, "error": _error_message(e)})
            await context.report_progress(index + 1)

        successful = sum(1 for r in results if r["success"])
        return {
            "total": len(items),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }

    async def _run_item(self, analysis_type: Any, item: Any, timeout: float | None) -> Any:
        payload = item if isinstance(item, Mapping) else {}
        if analysis_type == "backlinks":
            call = self._backlinks(payload)
        elif analysis_type == "keywords":
            call = self._keyword_metrics(payload)
        else:
            raise ValidationError(f"Unsupported bulk analysis type: {analysis_type}")

        try:
            return await asyncio.wait_for(call, timeout or None)
        except asyncio.TimeoutError as e:
            raise JobDeadlineExceeded(timeout, scope="item") from e
