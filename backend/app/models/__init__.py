"""
Database models.

This module exports all database models for easy import throughout the
application. All models inherit from Base and include the common audit
columns (created_at, updated_at).

Models:
    - Profile: Account that owns projects and spends credits
    - Project: Website tracked by a profile
    - Job: Generic background job (JobType, JobStatus)
    - CrawlJob: One website crawl and its audit (CrawlStatus)
    - CrawledPage: One fetched URL within a crawl
    - InternalLink / ExternalLink: Outbound links of a crawled page
    - PageIssue: One detected defect on one page
    - AuditScore: Scoring snapshot for one crawl
    - Recommendation: Prioritized action derived from issue counts
"""

from app.models.audit import (
    AuditScore,
    IssueCategory,
    IssueSeverity,
    PageIssue,
    Recommendation,
    RecommendationPriority,
)
from app.models.crawl_job import CrawlJob, CrawlStatus
from app.models.crawled_page import CrawledPage, ExternalLink, InternalLink
from app.models.job import TERMINAL_JOB_STATUSES, Job, JobStatus, JobType
from app.models.profile import Profile
from app.models.project import Project

__all__ = [
    "AuditScore",
    "CrawlJob",
    "CrawlStatus",
    "CrawledPage",
    "ExternalLink",
    "InternalLink",
    "IssueCategory",
    "IssueSeverity",
    "Job",
    "JobStatus",
    "JobType",
    "PageIssue",
    "Profile",
    "Project",
    "Recommendation",
    "RecommendationPriority",
    "TERMINAL_JOB_STATUSES",
]
