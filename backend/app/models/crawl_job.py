"""
Crawl job model.

A CrawlJob tracks one breadth-first crawl of a website and the analysis that
follows it. Status only moves forward: crawling -> analyzing -> completed,
with failed reachable from any non-terminal state.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.audit import AuditScore, PageIssue, Recommendation
    from app.models.crawled_page import CrawledPage
    from app.models.project import Project


class CrawlStatus(str, enum.Enum):
    """Enumeration of crawl job states."""

    CRAWLING = "crawling"  # Frontier is being drained
    ANALYZING = "analyzing"  # Pages are being scored
    COMPLETED = "completed"  # Audit written
    FAILED = "failed"  # Terminated with error


# Forward-only ordering of the non-failure states
CRAWL_STATUS_ORDER = {
    CrawlStatus.CRAWLING: 0,
    CrawlStatus.ANALYZING: 1,
    CrawlStatus.COMPLETED: 2,
}


class CrawlJob(Base):
    """
    Represents one website crawl and its audit.

    Attributes:
        id: UUID primary key
        project_id: Project being audited
        start_url: Normalized seed URL
        status: Current crawl status
        max_pages: Requested page budget (credits were reserved for it)
        progress: Percentage 0-100 (capped at 90 while crawling)
        pages_crawled: Pages persisted so far
        pages_discovered: Visited plus queued URLs at the last progress write
        credits_charged: Credits deducted when the crawl was created
        celery_task_id: Celery task running the traversal
        started_at: When the crawl was created
        completed_at: When the crawl reached completed or failed
        error_message: Failure message if failed
    """

    __tablename__ = "crawl_jobs"

    __table_args__ = (
        CheckConstraint("max_pages > 0", name="ck_crawl_jobs_max_pages_positive"),
        CheckConstraint(
            "progress >= 0 AND progress <= 100", name="ck_crawl_jobs_progress_range"
        ),
        CheckConstraint(
            "pages_crawled <= max_pages", name="ck_crawl_jobs_pages_within_budget"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="UUID primary key",
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Project being audited",
    )

    start_url: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
        comment="Normalized seed URL",
    )

    status: Mapped[CrawlStatus] = mapped_column(
        SQLEnum(
            CrawlStatus,
            name="crawl_status",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=CrawlStatus.CRAWLING,
        index=True,
        comment="Current crawl status",
    )

    max_pages: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Requested page budget",
    )

    progress: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Percentage complete (0-100)",
    )

    pages_crawled: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Pages persisted so far",
    )

    pages_discovered: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Visited plus queued URLs",
    )

    credits_charged: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Credits deducted up front (no refunds)",
    )

    celery_task_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Celery task ID running the traversal",
    )

    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the crawl was created",
    )

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the crawl finished or failed",
    )

    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Failure message if failed",
    )

    project: Mapped["Project"] = relationship("Project", back_populates="crawl_jobs")

    pages: Mapped[list["CrawledPage"]] = relationship(
        "CrawledPage",
        back_populates="crawl_job",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    issues: Mapped[list["PageIssue"]] = relationship(
        "PageIssue",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    audit_score: Mapped["AuditScore | None"] = relationship(
        "AuditScore",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    recommendations: Mapped[list["Recommendation"]] = relationship(
        "Recommendation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __init__(self, **kwargs):
        """Initialize crawl job with default values for optional fields."""
        if "id" not in kwargs:
            kwargs["id"] = uuid.uuid4()
        kwargs.setdefault("status", CrawlStatus.CRAWLING)
        kwargs.setdefault("progress", 0)
        kwargs.setdefault("pages_crawled", 0)
        kwargs.setdefault("pages_discovered", 0)
        kwargs.setdefault("credits_charged", 0)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<CrawlJob {self.id} {self.status.value} {self.pages_crawled}/{self.max_pages}>"

    @property
    def is_active(self) -> bool:
        """Check if the crawl is still crawling or analyzing."""
        return self.status in (CrawlStatus.CRAWLING, CrawlStatus.ANALYZING)
