"""
Job Orchestrator.

Creates Job rows, hands them to workers, and runs one job at a time through
the handler registered for its type:

    pending --claim--> processing --handler ok--> completed
                                  --handler raised--> failed
                                  --cancel requested--> cancelled

A terminal job is never written again and is never retried.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping
from uuid import UUID

from app.core.cancellation import CancellationToken
from app.core.config import Settings, settings as default_settings
from app.core.exceptions import (
    AuditPipelineError,
    JobCancelled,
    JobDeadlineExceeded,
    JobNotFound,
    TaskSubmissionFailed,
    UnsupportedJobType,
    ValidationError,
)
from app.jobs.handlers import JobContext, JobHandler, expected_items
from app.models.job import Job, JobStatus, JobType
from app.observability import jobs_finished_total, tracer
from app.repositories.jobs import JobRepository, SqlJobRepository
from app.services.task_queue import TaskQueueService

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Job was cancelled"
JOB_NOT_QUEUED = "Job could not be queued"


@dataclass(frozen=True)
class JobRunResult:
    """Terminal state of one ``run`` call."""

    job_id: UUID
    status: JobStatus
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"job_id": str(self.job_id), "status": self.status.value, "error": self.error}


class JobOrchestrator:
    """
    Generic runner for deferred jobs.

    Example:
        orchestrator = JobOrchestrator(handlers=handlers.registry(), task_queue=queue)
        job = await orchestrator.create_and_submit("bulk_analysis", {...})
        # later, in a worker
        result = await orchestrator.run(job.id)
    """

    def __init__(
        self,
        jobs: JobRepository | None = None,
        handlers: Mapping[str, JobHandler] | None = None,
        task_queue: TaskQueueService | None = None,
        config: Settings | None = None,
    ):
        self._jobs = jobs or SqlJobRepository()
        self._handlers = dict(handlers or {})
        self._task_queue = task_queue
        self._config = config or default_settings
        # Tokens of jobs running in this process, tripped by cancel_job
        self._running: dict[UUID, CancellationToken] = {}

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    async def create_job(
        self,
        job_type: JobType | str,
        input_data: dict[str, Any],
        total_items: int | None = None,
        profile_id: UUID | None = None,
    ) -> Job:
        """
        Create a pending job.

        Args:
            job_type: Type of the job; must have a registered handler
            input_data: Handler payload
            total_items: Expected progress steps (derived from the payload if None)
            profile_id: Owning profile

        Raises:
            UnsupportedJobType: No handler is registered for job_type
            ValidationError: total_items is negative
        """
        job_type = job_type.value if isinstance(job_type, JobType) else str(job_type)
        if job_type not in self._handlers:
            raise UnsupportedJobType(job_type)
        if total_items is None:
            total_items = expected_items(job_type, input_data)
        if total_items < 0:
            raise ValidationError("total_items must not be negative")

        return await self._jobs.create(
            job_type=job_type,
            input_data=input_data,
            total_items=total_items,
            profile_id=profile_id,
        )

    async def create_and_submit(
        self,
        job_type: JobType | str,
        input_data: dict[str, Any],
        total_items: int | None = None,
        profile_id: UUID | None = None,
    ) -> Job:
        """Create a pending job and enqueue it for a worker."""
        if self._task_queue is None:
            raise RuntimeError("JobOrchestrator has no task queue configured")

        job = await self.create_job(job_type, input_data, total_items, profile_id)
        try:
            task = self._task_queue.submit_job(job.id)
        except TaskSubmissionFailed:
            await self._jobs.fail(job.id, JOB_NOT_QUEUED)
            raise
        await self._jobs.set_task_id(job.id, task.task_id)
        job.celery_task_id = task.task_id
        return job

    async def get_job(self, job_id: UUID) -> Job:
        job = await self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    async def cancel_job(self, job_id: UUID) -> Job:
        """
        Cancel a pending or running job.

        Pending jobs move to ``cancelled`` immediately and their queued task
        is revoked. Running jobs are flagged; the handler stops at its next
        cancellation checkpoint.

        Raises:
            JobNotFound: Unknown job
            ValidationError: The job already reached a terminal status
        """
        job = await self.get_job(job_id)
        if job.status == JobStatus.PENDING:
            await self._jobs.fail(job_id, CANCELLED_MESSAGE, status=JobStatus.CANCELLED)
            if job.celery_task_id and self._task_queue is not None:
                self._task_queue.cancel_task(job.celery_task_id)
        elif job.status == JobStatus.PROCESSING:
            await self._jobs.request_cancel(job_id)
            token = self._running.get(job_id)
            if token is not None:
                token.cancel()
        else:
            raise ValidationError(f"Job is already {job.status.value}")

        logger.info("Job cancellation requested", extra={"job_id": str(job_id)})
        return await self.get_job(job_id)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, job_id: UUID) -> JobRunResult:
        """
        Run one job to a terminal status.

        Handler failures are recorded on the job and reported in the result,
        not raised.

        Raises:
            JobNotFound: Unknown job
            UnsupportedJobType: No handler for the job's type (recorded first)
        """
        job = await self.get_job(job_id)

        handler = self._handlers.get(job.job_type)
        if handler is None:
            error = UnsupportedJobType(job.job_type)
            await self._jobs.fail(job_id, error.message)
            jobs_finished_total.labels(job_type=job.job_type, status=JobStatus.FAILED.value).inc()
            logger.error(
                "No handler for job type",
                extra={"job_id": str(job_id), "job_type": job.job_type},
            )
            raise error

        if not await self._jobs.claim(job_id):
            current = await self.get_job(job_id)
            logger.warning(
                "Job is not pending, skipping",
                extra={"job_id": str(job_id), "status": current.status.value},
            )
            return JobRunResult(job_id=job_id, status=current.status, error=current.error_message)

        token = CancellationToken(poll=lambda: self._jobs.is_cancel_requested(job_id))
        self._running[job_id] = token

        async def report_progress(value: int) -> None:
            clamped = max(0, min(int(value), job.total_items))
            await self._jobs.update_progress(job_id, clamped)

        context = JobContext(
            job_id=job_id,
            input_data=dict(job.input_data or {}),
            report_progress=report_progress,
            token=token,
            profile_id=job.profile_id,
            item_timeout=self._config.JOB_ITEM_TIMEOUT_SECONDS or None,
        )

        logger.info(
            "Job started",
            extra={"job_id": str(job_id), "job_type": job.job_type, "total_items": job.total_items},
        )
        try:
            with tracer.start_as_current_span("job.run") as span:
                span.set_attribute("job.id", str(job_id))
                span.set_attribute("job.type", job.job_type)
                result = await self._execute(handler, context)
        except JobCancelled as e:
            return await self._finish_failed(job, e.message, JobStatus.CANCELLED)
        except Exception as e:
            message = e.message if isinstance(e, AuditPipelineError) else (str(e) or type(e).__name__)
            logger.error(
                "Job failed",
                extra={"job_id": str(job_id), "job_type": job.job_type, "error": message},
                exc_info=not isinstance(e, AuditPipelineError),
            )
            return await self._finish_failed(job, message, JobStatus.FAILED)
        finally:
            self._running.pop(job_id, None)

        await self._jobs.complete(job_id, result)
        jobs_finished_total.labels(job_type=job.job_type, status=JobStatus.COMPLETED.value).inc()
        logger.info("Job completed", extra={"job_id": str(job_id), "job_type": job.job_type})
        return JobRunResult(job_id=job_id, status=JobStatus.COMPLETED)

    async def _execute(self, handler: JobHandler, context: JobContext) -> Any:
        timeout = self._config.JOB_TIMEOUT_SECONDS or None
        try:
            return await asyncio.wait_for(handler(context), timeout)
        except asyncio.TimeoutError as e:
            raise JobDeadlineExceeded(timeout) from e

    async def _finish_failed(self, job: Job, message: str, status: JobStatus) -> JobRunResult:
        await self._jobs.fail(job.id, message, status=status)
        jobs_finished_total.labels(job_type=job.job_type, status=status.value).inc()
        return JobRunResult(job_id=job.id, status=status, error=message)
