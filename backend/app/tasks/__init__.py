"""
Celery tasks for background processing.

This package contains task modules for:
- crawling: Website crawl and audit execution
- jobs: Generic job execution and stale job cleanup
"""

from app.tasks.crawling import run_crawl_job
from app.tasks.jobs import cleanup_stale_jobs, run_job

__all__ = [
    "run_crawl_job",
    "run_job",
    "cleanup_stale_jobs",
]
