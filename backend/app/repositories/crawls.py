"""
Repository for crawl jobs, crawled pages and audit results.

The credit reservation and the CrawlJob insert share one transaction, and the
analysis result (score, issues, recommendations) is written atomically, so a
failure never leaves a charged profile without a crawl row or a crawl with
scores but no issues.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update

from app.core.exceptions import (
    CrawlJobNotFound,
    InsufficientCredits,
    ProfileNotFound,
    ValidationError,
)
from app.models.audit import AuditScore, PageIssue, Recommendation
from app.models.crawl_job import CrawlJob, CrawlStatus
from app.models.crawled_page import CrawledPage, ExternalLink, InternalLink
from app.models.profile import Profile
from app.models.project import Project
from app.repositories.base import SqlRepository

logger = logging.getLogger(__name__)

ACTIVE_CRAWL_STATUSES = (CrawlStatus.CRAWLING, CrawlStatus.ANALYZING)


@dataclass
class CreditReservation:
    """Terms of the up-front credit reservation for a crawl."""

    credits_needed: int
    unmetered_plan_types: Sequence[str] = field(default_factory=tuple)


@dataclass
class AuditReport:
    """Stored audit result of one crawl."""

    score: AuditScore | None
    issues: list[PageIssue]
    recommendations: list[Recommendation]


class CrawlRepository(ABC):
    """Abstract interface for crawl persistence."""

    @abstractmethod
    async def create_crawl_job(
        self,
        project_id: UUID,
        profile_id: UUID,
        start_url: str,
        max_pages: int,
        reservation: CreditReservation,
    ) -> CrawlJob:
        """Check and deduct credits, then insert a CrawlJob in ``crawling``.

        Raises:
            ValidationError: If the project does not exist or belongs to another profile
            ProfileNotFound: If the profile does not exist
            InsufficientCredits: If a metered profile cannot cover the reservation
        """
        ...

    @abstractmethod
    async def get_crawl_job(self, crawl_job_id: UUID) -> CrawlJob | None: ...

    @abstractmethod
    async def add_page(
        self,
        crawl_job_id: UUID,
        page: dict[str, Any],
        internal_links: Iterable[str],
        external_links: Iterable[str],
    ) -> UUID:
        """Insert one CrawledPage with its link rows; returns the page id."""
        ...

    @abstractmethod
    async def update_progress(
        self,
        crawl_job_id: UUID,
        progress: int,
        pages_crawled: int,
        pages_discovered: int,
    ) -> None: ...

    @abstractmethod
    async def mark_analyzing(self, crawl_job_id: UUID, progress: int) -> bool: ...

    @abstractmethod
    async def mark_completed(self, crawl_job_id: UUID) -> bool: ...

    @abstractmethod
    async def mark_failed(self, crawl_job_id: UUID, message: str) -> bool: ...

    @abstractmethod
    async def set_task_id(self, crawl_job_id: UUID, task_id: str) -> None: ...

    @abstractmethod
    async def list_pages(self, crawl_job_id: UUID) -> list[CrawledPage]: ...

    @abstractmethod
    async def save_analysis(
        self,
        crawl_job_id: UUID,
        score: AuditScore,
        issues: list[PageIssue],
        recommendations: list[Recommendation],
    ) -> None:
        """Replace the crawl's audit result in a single transaction."""
        ...

    @abstractmethod
    async def get_audit(self, crawl_job_id: UUID) -> AuditReport: ...

    @abstractmethod
    async def fail_stale(self, older_than: datetime, message: str) -> int: ...


class SqlCrawlRepository(SqlRepository, CrawlRepository):
    """SQLAlchemy implementation of CrawlRepository."""

    async def create_crawl_job(
        self,
        project_id: UUID,
        profile_id: UUID,
        start_url: str,
        max_pages: int,
        reservation: CreditReservation,
    ) -> CrawlJob:
        async with self._transaction("create crawl job") as session:
            project = await session.get(Project, project_id)
            if project is None or project.owner_id != profile_id:
                raise ValidationError("Project not found")

            profile = await session.get(Profile, profile_id, with_for_update=True)
            if profile is None:
                raise ProfileNotFound(profile_id)

            charged = 0
            if profile.plan_type not in reservation.unmetered_plan_types:
                if profile.credits < reservation.credits_needed:
                    raise InsufficientCredits(reservation.credits_needed, profile.credits)
                profile.credits -= reservation.credits_needed
                charged = reservation.credits_needed

            crawl_job = CrawlJob(
                project_id=project_id,
                start_url=start_url,
                max_pages=max_pages,
                status=CrawlStatus.CRAWLING,
                credits_charged=charged,
                started_at=datetime.now(UTC),
            )
            session.add(crawl_job)

        logger.info(
            "Crawl job created",
            extra={
                "crawl_job_id": str(crawl_job.id),
                "project_id": str(project_id),
                "max_pages": max_pages,
                "credits_charged": charged,
            },
        )
        return crawl_job

    async def get_crawl_job(self, crawl_job_id: UUID) -> CrawlJob | None:
        async with self._transaction("load crawl job") as session:
            return await session.get(CrawlJob, crawl_job_id)

    async def add_page(
        self,
        crawl_job_id: UUID,
        page: dict[str, Any],
        internal_links: Iterable[str],
        external_links: Iterable[str],
    ) -> UUID:
        async with self._transaction("store crawled page") as session:
            row = CrawledPage(crawl_job_id=crawl_job_id, **page)
            session.add(row)
            session.add_all(
                InternalLink(
                    crawl_job_id=crawl_job_id,
                    source_page_id=row.id,
                    target_url=target,
                    is_broken=False,
                )
                for target in internal_links
            )
            session.add_all(
                ExternalLink(
                    crawl_job_id=crawl_job_id,
                    source_page_id=row.id,
                    target_url=target,
                    is_broken=False,
                )
                for target in external_links
            )
            return row.id

    async def update_progress(
        self,
        crawl_job_id: UUID,
        progress: int,
        pages_crawled: int,
        pages_discovered: int,
    ) -> None:
        async with self._transaction("update crawl progress") as session:
            await session.execute(
                update(CrawlJob)
                .where(
                    CrawlJob.id == crawl_job_id,
                    CrawlJob.status == CrawlStatus.CRAWLING,
                    CrawlJob.progress <= progress,
                    CrawlJob.pages_crawled <= pages_crawled,
                )
                .values(
                    progress=progress,
                    pages_crawled=pages_crawled,
                    pages_discovered=pages_discovered,
                )
            )

    async def mark_analyzing(self, crawl_job_id: UUID, progress: int) -> bool:
        async with self._transaction("mark crawl analyzing") as session:
            result = await session.execute(
                update(CrawlJob)
                .where(CrawlJob.id == crawl_job_id, CrawlJob.status == CrawlStatus.CRAWLING)
                .values(status=CrawlStatus.ANALYZING, progress=progress)
            )
            return result.rowcount == 1

    async def mark_completed(self, crawl_job_id: UUID) -> bool:
        async with self._transaction("mark crawl completed") as session:
            result = await session.execute(
                update(CrawlJob)
                .where(CrawlJob.id == crawl_job_id, CrawlJob.status == CrawlStatus.ANALYZING)
                .values(
                    status=CrawlStatus.COMPLETED,
                    progress=100,
                    completed_at=datetime.now(UTC),
                )
            )
            return result.rowcount == 1

    async def mark_failed(self, crawl_job_id: UUID, message: str) -> bool:
        async with self._transaction("mark crawl failed") as session:
            result = await session.execute(
                update(CrawlJob)
                .where(
                    CrawlJob.id == crawl_job_id,
                    CrawlJob.status.in_(ACTIVE_CRAWL_STATUSES),
                )
                .values(
                    status=CrawlStatus.FAILED,
                    error_message=message,
                    completed_at=datetime.now(UTC),
                )
            )
            return result.rowcount == 1

    async def set_task_id(self, crawl_job_id: UUID, task_id: str) -> None:
        async with self._transaction("store crawl task id") as session:
            await session.execute(
                update(CrawlJob)
                .where(CrawlJob.id == crawl_job_id)
                .values(celery_task_id=task_id)
            )

    async def list_pages(self, crawl_job_id: UUID) -> list[CrawledPage]:
        async with self._transaction("load crawled pages") as session:
            result = await session.scalars(
                select(CrawledPage)
                .where(CrawledPage.crawl_job_id == crawl_job_id)
                .order_by(CrawledPage.created_at, CrawledPage.url)
            )
            return list(result.all())

    async def save_analysis(
        self,
        crawl_job_id: UUID,
        score: AuditScore,
        issues: list[PageIssue],
        recommendations: list[Recommendation],
    ) -> None:
        async with self._transaction("store audit results") as session:
            # Re-analysis replaces the previous snapshot
            for model in (PageIssue, AuditScore, Recommendation):
                await session.execute(
                    delete(model).where(model.crawl_job_id == crawl_job_id)
                )
            session.add(score)
            session.add_all(issues)
            session.add_all(recommendations)

        logger.info(
            "Audit results stored",
            extra={
                "crawl_job_id": str(crawl_job_id),
                "issues": len(issues),
                "recommendations": len(recommendations),
            },
        )

    async def get_audit(self, crawl_job_id: UUID) -> AuditReport:
        async with self._transaction("load audit results") as session:
            crawl_job = await session.get(CrawlJob, crawl_job_id)
            if crawl_job is None:
                raise CrawlJobNotFound(crawl_job_id)
            score = await session.scalar(
                select(AuditScore).where(AuditScore.crawl_job_id == crawl_job_id)
            )
            issues = await session.scalars(
                select(PageIssue).where(PageIssue.crawl_job_id == crawl_job_id)
            )
            recommendations = await session.scalars(
                select(Recommendation).where(Recommendation.crawl_job_id == crawl_job_id)
            )
            return AuditReport(
                score=score,
                issues=list(issues.all()),
                recommendations=list(recommendations.all()),
            )

    async def fail_stale(self, older_than: datetime, message: str) -> int:
        async with self._transaction("fail stale crawls") as session:
            result = await session.execute(
                update(CrawlJob)
                .where(
                    CrawlJob.status.in_(ACTIVE_CRAWL_STATUSES),
                    CrawlJob.started_at < older_than,
                )
                .values(
                    status=CrawlStatus.FAILED,
                    error_message=message,
                    completed_at=datetime.now(UTC),
                )
            )
            return result.rowcount
