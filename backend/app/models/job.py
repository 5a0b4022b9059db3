"""
Generic background job model.

A Job is one unit of deferred work (keyword research, clustering, competitor
analysis, a crawl, a batch...) executed by the JobOrchestrator. Its status and
progress columns are the single source of truth that dashboards poll.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, JSONType


class JobType(str, enum.Enum):
    """Kinds of work the orchestrator knows how to dispatch."""

    CRAWL = "crawl"
    KEYWORD_RESEARCH = "keyword_research"
    KEYWORD_CLUSTERING = "keyword_clustering"
    COMPETITOR_ANALYSIS = "competitor_analysis"
    SERP_TRACKING = "serp_tracking"
    BACKLINKS_ANALYSIS = "backlinks_analysis"
    BULK_ANALYSIS = "bulk_analysis"


class JobStatus(str, enum.Enum):
    """Enumeration of job states."""

    PENDING = "pending"  # Created, waiting for a worker
    PROCESSING = "processing"  # Claimed by the orchestrator
    COMPLETED = "completed"  # Handler returned a result
    FAILED = "failed"  # Handler raised
    CANCELLED = "cancelled"  # Cancelled before or during processing


TERMINAL_JOB_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)


class Job(Base):
    """
    Represents one asynchronous unit of work tracked by status and progress.

    Attributes:
        id: UUID primary key
        profile_id: Profile that requested the job (optional)
        job_type: Handler to dispatch to
        status: Current lifecycle state
        progress: Items completed so far (0..total_items, never decreases)
        total_items: Items expected
        input_data: Handler payload
        result_data: Handler result, set only on completion
        error_message: Failure text, set only on failure or cancellation
        cancel_requested: Cooperative cancellation flag polled by the worker
        celery_task_id: Celery task executing this job
        started_at: When processing began
        completed_at: When a terminal state was reached
    """

    __tablename__ = "jobs"

    __table_args__ = (
        CheckConstraint("progress >= 0", name="ck_jobs_progress_non_negative"),
        CheckConstraint("total_items >= 0", name="ck_jobs_total_items_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="UUID primary key",
    )

    profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="Profile that requested the job",
    )

    job_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Handler key (see JobType)",
    )

    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(
            JobStatus,
            name="job_status",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
        comment="Current job status",
    )

    progress: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Items completed so far",
    )

    total_items: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Items expected",
    )

    input_data: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Handler payload",
    )

    result_data: Mapped[Any | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Handler result (completed jobs only)",
    )

    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Failure message (failed or cancelled jobs only)",
    )

    cancel_requested: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Set by cancel requests, polled at worker checkpoints",
    )

    celery_task_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Celery task ID for job control",
    )

    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When processing began",
    )

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When a terminal state was reached",
    )

    def __init__(self, **kwargs):
        """Initialize job with default values for optional fields."""
        if "id" not in kwargs:
            kwargs["id"] = uuid.uuid4()
        if isinstance(kwargs.get("job_type"), JobType):
            kwargs["job_type"] = kwargs["job_type"].value
        kwargs.setdefault("status", JobStatus.PENDING)
        kwargs.setdefault("progress", 0)
        kwargs.setdefault("total_items", 1)
        kwargs.setdefault("input_data", {})
        kwargs.setdefault("cancel_requested", False)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Job {self.id} {self.job_type} ({self.status.value} {self.progress}/{self.total_items})>"

    @property
    def is_terminal(self) -> bool:
        """True once the job reached completed, failed or cancelled."""
        return self.status in TERMINAL_JOB_STATUSES

    @property
    def can_cancel(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.PROCESSING)
