"""
Analysis Engine.

Scores every page of a crawl against the rule set, computes the five
category scores and the overall score, synthesizes recommendations, and
writes the whole audit (score, issues, recommendations) in one transaction.
"""

import logging
import time
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

from app.analysis.recommendations import RecommendationDraft, generate_recommendations
from app.analysis.rules import Finding, PageFacts, evaluate_page
from app.analysis.scoring import ScoreCard, overall_score, score_breakdown
from app.core.cancellation import CancellationToken, never_cancelled
from app.core.exceptions import NoPagesFound
from app.models.audit import AuditScore, IssueSeverity, PageIssue, Recommendation
from app.observability import analysis_duration_seconds, tracer
from app.repositories.crawls import CrawlRepository, SqlCrawlRepository

logger = logging.getLogger(__name__)


@dataclass
class PageFindings:
    page_id: UUID
    findings: list[Finding]


@dataclass
class AuditResult:
    """In-memory result of scoring a set of pages."""

    pages_analyzed: int
    page_findings: list[PageFindings] = field(default_factory=list)
    scores: dict[str, int] = field(default_factory=dict)
    overall_score: int = 0
    recommendations: list[RecommendationDraft] = field(default_factory=list)

    @property
    def findings(self) -> list[Finding]:
        return [f for page in self.page_findings for f in page.findings]

    @property
    def total_issues(self) -> int:
        return len(self.findings)

    def severity_counts(self) -> dict[IssueSeverity, int]:
        counts = Counter(f.severity for f in self.findings)
        return {severity: counts.get(severity, 0) for severity in IssueSeverity}


@dataclass(frozen=True)
class AnalysisSummary:
    """What analyze() reports back to the crawl engine."""

    overall_score: int
    total_issues: int
    pages_analyzed: int


def audit_pages(pages: Sequence[PageFacts]) -> AuditResult:
    """
    Score pages without touching the database.

    Pages must expose an ``id`` attribute in addition to the rule inputs.
    Deterministic: the same pages always give the same result.
    """
    total_pages = len(pages)
    card = ScoreCard()
    result = AuditResult(pages_analyzed=total_pages)

    for page in pages:
        findings = evaluate_page(page, total_pages)
        for finding in findings:
            card.deduct(finding.score_category, finding.deduction)
        result.page_findings.append(PageFindings(page_id=page.id, findings=findings))

    result.scores = card.scores()
    result.overall_score = overall_score(result.scores)
    result.recommendations = generate_recommendations(
        (f.issue_type for f in result.findings), total_pages
    )
    return result


class AnalysisEngine:
    """
    Turns the stored pages of a crawl into an audit.

    Example:
        engine = AnalysisEngine()
        summary = await engine.analyze(crawl_job_id, project_id)
    """

    def __init__(self, crawls: CrawlRepository | None = None):
        self._crawls = crawls or SqlCrawlRepository()

    async def analyze(
        self,
        crawl_job_id: UUID,
        project_id: UUID,
        token: CancellationToken | None = None,
    ) -> AnalysisSummary:
        """
        Score all pages of a crawl and persist the audit.

        Re-running on unchanged pages replaces the previous audit with an
        identical one.

        Raises:
            NoPagesFound: If the crawl has no stored pages
            JobCancelled: If cancellation was requested before the write
            PersistenceFailure: If reading pages or writing the audit fails
        """
        token = token or never_cancelled()
        started = time.perf_counter()

        with tracer.start_as_current_span("analysis.analyze") as span:
            span.set_attribute("crawl_job.id", str(crawl_job_id))

            pages = await self._crawls.list_pages(crawl_job_id)
            if not pages:
                raise NoPagesFound(crawl_job_id)

            result = audit_pages(pages)
            await token.raise_if_cancelled("Analysis was cancelled")

            await self._crawls.save_analysis(
                crawl_job_id,
                score=self._score_row(crawl_job_id, project_id, result),
                issues=self._issue_rows(crawl_job_id, result),
                recommendations=self._recommendation_rows(crawl_job_id, project_id, result),
            )
            span.set_attribute("audit.overall_score", result.overall_score)

        analysis_duration_seconds.observe(time.perf_counter() - started)
        logger.info(
            "Analysis completed",
            extra={
                "crawl_job_id": str(crawl_job_id),
                "pages_analyzed": result.pages_analyzed,
                "total_issues": result.total_issues,
                "overall_score": result.overall_score,
            },
        )
        return AnalysisSummary(
            overall_score=result.overall_score,
            total_issues=result.total_issues,
            pages_analyzed=result.pages_analyzed,
        )

    @staticmethod
    def _score_row(crawl_job_id: UUID, project_id: UUID, result: AuditResult) -> AuditScore:
        severities = result.severity_counts()
        return AuditScore(
            crawl_job_id=crawl_job_id,
            project_id=project_id,
            overall_score=result.overall_score,
            technical_score=result.scores["technical"],
            onpage_score=result.scores["onpage"],
            content_score=result.scores["content"],
            performance_score=result.scores["performance"],
            mobile_score=result.scores["mobile"],
            total_issues=result.total_issues,
            critical_issues=severities[IssueSeverity.CRITICAL],
            high_issues=severities[IssueSeverity.HIGH],
            medium_issues=severities[IssueSeverity.MEDIUM],
            low_issues=severities[IssueSeverity.LOW],
            pages_analyzed=result.pages_analyzed,
            score_breakdown=score_breakdown(result.scores),
        )

    @staticmethod
    def _issue_rows(crawl_job_id: UUID, result: AuditResult) -> list[PageIssue]:
        return [
            PageIssue(
                crawl_job_id=crawl_job_id,
                page_id=page.page_id,
                issue_type=finding.issue_type,
                category=finding.category,
                severity=finding.severity,
                title=finding.title,
                description=finding.description,
                recommendation=finding.recommendation,
                affected_element=finding.affected_element,
            )
            for page in result.page_findings
            for finding in page.findings
        ]

    @staticmethod
    def _recommendation_rows(
        crawl_job_id: UUID, project_id: UUID, result: AuditResult
    ) -> list[Recommendation]:
        return [
            Recommendation(
                crawl_job_id=crawl_job_id,
                project_id=project_id,
                priority=draft.priority,
                category=draft.category,
                title=draft.title,
                description=draft.description,
                impact=draft.impact,
                effort=draft.effort,
                affected_pages_count=draft.affected_pages_count,
                estimated_improvement=draft.estimated_improvement,
                implementation_guide=draft.implementation_guide,
            )
            for draft in result.recommendations
        ]
