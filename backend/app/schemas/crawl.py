"""
Pydantic schemas for the crawl API.

Request bodies use the dashboard's camelCase field names; responses are
serialized from the ORM rows.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.audit import IssueCategory, IssueSeverity, RecommendationPriority
from app.models.crawl_job import CrawlStatus


# =============================================================================
# Crawl Trigger
# =============================================================================


class StartCrawlRequest(BaseModel):
    """Request schema for starting a website crawl."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: UUID = Field(
        ...,
        alias="projectId",
        description="Project the crawl belongs to",
    )
    domain: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="Domain or URL to crawl; https:// is assumed when no scheme is given",
    )
    max_pages: Optional[int] = Field(
        None,
        alias="maxPages",
        ge=1,
        description="Page budget for the crawl (one credit per page on metered plans)",
    )


class StartCrawlResponse(BaseModel):
    """Response schema for a started crawl."""

    success: bool = True
    crawl_job_id: UUID = Field(..., serialization_alias="crawlJobId")
    message: str


# =============================================================================
# Crawl Status
# =============================================================================


class CrawlJobResponse(BaseModel):
    """Response schema for crawl status polling."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    start_url: str
    status: CrawlStatus
    max_pages: int
    progress: int = Field(..., description="0-90 while crawling, 100 when completed")
    pages_crawled: int
    pages_discovered: int
    credits_charged: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: datetime


# =============================================================================
# Audit Results
# =============================================================================


class AuditScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    overall_score: int
    technical_score: int
    onpage_score: int
    content_score: int
    performance_score: int
    mobile_score: int
    total_issues: int
    critical_issues: int
    high_issues: int
    medium_issues: int
    low_issues: int
    pages_analyzed: int
    score_breakdown: dict[str, Any]


class PageIssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    page_id: UUID
    issue_type: str
    category: IssueCategory
    severity: IssueSeverity
    title: str
    description: str
    recommendation: str
    affected_element: Optional[str] = None


class RecommendationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    priority: RecommendationPriority
    category: str
    title: str
    description: str
    impact: str
    effort: str
    affected_pages_count: int
    estimated_improvement: str
    implementation_guide: str


class AuditResponse(BaseModel):
    """Stored audit of one crawl; score is null until analysis completes."""

    crawl_job_id: UUID
    status: CrawlStatus
    score: Optional[AuditScoreResponse] = None
    issues: list[PageIssueResponse] = Field(default_factory=list)
    recommendations: list[RecommendationResponse] = Field(default_factory=list)
