"""
Repository for Job rows.

All status and progress writes are conditional updates so that the lifecycle
rules hold even when several processes touch the same row:

- only a ``pending`` job can be claimed,
- progress never decreases,
- a terminal job is never written again.
"""

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update

from app.models.job import Job, JobStatus, JobType
from app.repositories.base import SqlRepository

logger = logging.getLogger(__name__)

ACTIVE_JOB_STATUSES = (JobStatus.PENDING, JobStatus.PROCESSING)


class JobRepository(ABC):
    """Abstract interface for Job persistence."""

    @abstractmethod
    async def create(
        self,
        job_type: JobType | str,
        input_data: dict[str, Any],
        total_items: int = 1,
        profile_id: UUID | None = None,
    ) -> Job:
        """Insert a new job in ``pending`` status."""
        ...

    @abstractmethod
    async def get(self, job_id: UUID) -> Job | None: ...

    @abstractmethod
    async def claim(self, job_id: UUID) -> bool:
        """Move a pending job to processing and stamp started_at.

        Returns:
            False if the job was not pending (already claimed, cancelled...)
        """
        ...

    @abstractmethod
    async def update_progress(self, job_id: UUID, progress: int) -> None:
        """Raise progress of a processing job; lower values are ignored."""
        ...

    @abstractmethod
    async def complete(self, job_id: UUID, result_data: Any) -> bool:
        """Store the result, set progress = total_items and status completed."""
        ...

    @abstractmethod
    async def fail(
        self, job_id: UUID, message: str, status: JobStatus = JobStatus.FAILED
    ) -> bool:
        """Store error_message and move a non-terminal job to failed/cancelled."""
        ...

    @abstractmethod
    async def request_cancel(self, job_id: UUID) -> bool:
        """Flag a processing job for cooperative cancellation."""
        ...

    @abstractmethod
    async def is_cancel_requested(self, job_id: UUID) -> bool: ...

    @abstractmethod
    async def set_task_id(self, job_id: UUID, task_id: str) -> None: ...

    @abstractmethod
    async def fail_stale(self, older_than: datetime, message: str) -> int:
        """Fail processing jobs started before ``older_than``; returns the count."""
        ...


class SqlJobRepository(SqlRepository, JobRepository):
    """SQLAlchemy implementation of JobRepository."""

    async def create(
        self,
        job_type: JobType | str,
        input_data: dict[str, Any],
        total_items: int = 1,
        profile_id: UUID | None = None,
    ) -> Job:
        job = Job(
            job_type=job_type,
            input_data=input_data,
            total_items=total_items,
            profile_id=profile_id,
            status=JobStatus.PENDING,
        )
        async with self._transaction("create job") as session:
            session.add(job)
        logger.info(
            "Job created",
            extra={"job_id": str(job.id), "job_type": job.job_type, "total_items": total_items},
        )
        return job

    async def get(self, job_id: UUID) -> Job | None:
        async with self._transaction("load job") as session:
            return await session.get(Job, job_id)

    async def claim(self, job_id: UUID) -> bool:
        async with self._transaction("claim job") as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.PENDING)
                .values(status=JobStatus.PROCESSING, started_at=datetime.now(UTC))
            )
            return result.rowcount == 1

    async def update_progress(self, job_id: UUID, progress: int) -> None:
        async with self._transaction("update job progress") as session:
            await session.execute(
                update(Job)
                .where(
                    Job.id == job_id,
                    Job.status == JobStatus.PROCESSING,
                    Job.progress <= progress,
                    Job.total_items >= progress,
                )
                .values(progress=progress)
            )

    async def complete(self, job_id: UUID, result_data: Any) -> bool:
        async with self._transaction("complete job") as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.PROCESSING)
                .values(
                    status=JobStatus.COMPLETED,
                    result_data=result_data,
                    progress=Job.total_items,
                    completed_at=datetime.now(UTC),
                )
            )
            return result.rowcount == 1

    async def fail(
        self, job_id: UUID, message: str, status: JobStatus = JobStatus.FAILED
    ) -> bool:
        async with self._transaction("fail job") as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status.in_(ACTIVE_JOB_STATUSES))
                .values(
                    status=status,
                    error_message=message,
                    completed_at=datetime.now(UTC),
                )
            )
            return result.rowcount == 1

    async def request_cancel(self, job_id: UUID) -> bool:
        async with self._transaction("request job cancellation") as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.PROCESSING)
                .values(cancel_requested=True)
            )
            return result.rowcount == 1

    async def is_cancel_requested(self, job_id: UUID) -> bool:
        async with self._transaction("read job cancellation flag") as session:
            flag = await session.scalar(
                select(Job.cancel_requested).where(Job.id == job_id)
            )
            return bool(flag)

    async def set_task_id(self, job_id: UUID, task_id: str) -> None:
        async with self._transaction("store job task id") as session:
            await session.execute(
                update(Job).where(Job.id == job_id).values(celery_task_id=task_id)
            )

    async def fail_stale(self, older_than: datetime, message: str) -> int:
        async with self._transaction("fail stale jobs") as session:
            result = await session.execute(
                update(Job)
                .where(
                    Job.status == JobStatus.PROCESSING,
                    Job.started_at < older_than,
                )
                .values(
                    status=JobStatus.FAILED,
                    error_message=message,
                    completed_at=datetime.now(UTC),
                )
            )
            return result.rowcount
