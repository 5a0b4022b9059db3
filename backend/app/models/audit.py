"""
Audit result models.

PageIssue, AuditScore and Recommendation rows are produced together by the
AnalysisEngine in a single transaction after every page of a crawl has been
scored. They are read-only afterwards.
"""

from __future__ import annotations

import enum
import uuid
from typing import Any

from sqlalchemy import (
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, JSONType


class IssueCategory(str, enum.Enum):
    """Score bucket an issue deducts from."""

    TECHNICAL = "technical"
    ON_PAGE = "on-page"
    CONTENT = "content"
    PERFORMANCE = "performance"


class IssueSeverity(str, enum.Enum):
    """Issue severity."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationPriority(str, enum.Enum):
    """Priority tier of a synthesized recommendation."""

    QUICK_WIN = "quick-win"
    HIGH_IMPACT = "high-impact"
    LONG_TERM = "long-term"


class PageIssue(Base):
    """
    One detected defect on one page.

    Attributes:
        id: UUID primary key
        crawl_job_id: Crawl the page belongs to
        page_id: Page the issue was found on
        issue_type: Rule identifier (missing_title, thin_content, ...)
        category: Score bucket
        severity: Issue severity
        title: Short human-readable summary
        description: Details including measured values
        recommendation: Suggested fix
        affected_element: Excerpt of the offending element, if any
    """

    __tablename__ = "page_issues"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    crawl_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("crawl_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Crawl the page belongs to",
    )

    page_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("crawled_pages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Page the issue was found on",
    )

    issue_type: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True, comment="Rule identifier"
    )

    category: Mapped[IssueCategory] = mapped_column(
        SQLEnum(
            IssueCategory,
            name="issue_category",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        comment="Score bucket",
    )

    severity: Mapped[IssueSeverity] = mapped_column(
        SQLEnum(
            IssueSeverity,
            name="issue_severity",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        index=True,
        comment="Issue severity",
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    recommendation: Mapped[str] = mapped_column(Text, nullable=False)
    affected_element: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<PageIssue {self.issue_type} ({self.severity.value}) page={self.page_id}>"


class AuditScore(Base):
    """
    Scoring snapshot for one crawl. Exactly one row per crawl job.

    score_breakdown maps each category to ``{"score": int, "weight": float}``.
    """

    __tablename__ = "audit_scores"

    __table_args__ = (
        UniqueConstraint("crawl_job_id", name="uq_audit_scores_crawl_job"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    crawl_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("crawl_jobs.id", ondelete="CASCADE"),
        nullable=False,
        comment="Scored crawl",
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Project the crawl belongs to",
    )

    overall_score: Mapped[int] = mapped_column(Integer, nullable=False)
    technical_score: Mapped[int] = mapped_column(Integer, nullable=False)
    onpage_score: Mapped[int] = mapped_column(Integer, nullable=False)
    content_score: Mapped[int] = mapped_column(Integer, nullable=False)
    performance_score: Mapped[int] = mapped_column(Integer, nullable=False)
    mobile_score: Mapped[int] = mapped_column(Integer, nullable=False)

    total_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    critical_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medium_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pages_analyzed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    score_breakdown: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Per-category score and weight",
    )

    def __repr__(self) -> str:
        return f"<AuditScore crawl={self.crawl_job_id} overall={self.overall_score}>"


class Recommendation(Base):
    """One prioritized, aggregated action derived from issue counts."""

    __tablename__ = "audit_recommendations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    crawl_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("crawl_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    priority: Mapped[RecommendationPriority] = mapped_column(
        SQLEnum(
            RecommendationPriority,
            name="recommendation_priority",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        comment="Priority tier",
    )

    category: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Display category (e.g. On-Page SEO)"
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    impact: Mapped[str] = mapped_column(String(20), nullable=False)
    effort: Mapped[str] = mapped_column(String(20), nullable=False)
    affected_pages_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_improvement: Mapped[str] = mapped_column(String(255), nullable=False)
    implementation_guide: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Recommendation {self.priority.value} '{self.title}'>"
