"""Pydantic request and response schemas for the HTTP API."""

from app.schemas.crawl import (
    AuditResponse,
    CrawlJobResponse,
    StartCrawlRequest,
    StartCrawlResponse,
)
from app.schemas.job import CreateJobRequest, JobResponse

__all__ = [
    "AuditResponse",
    "CrawlJobResponse",
    "CreateJobRequest",
    "JobResponse",
    "StartCrawlRequest",
    "StartCrawlResponse",
]
