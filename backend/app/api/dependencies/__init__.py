"""
FastAPI dependency injection modules.

This package contains dependency providers for the pipeline components
used by the HTTP routes.
"""

from app.api.dependencies.pipeline import (
    Crawls,
    Engine,
    Orchestrator,
    ProfileId,
    TaskQueue,
    get_crawl_engine,
    get_crawl_repository,
    get_job_repository,
    get_orchestrator,
    get_profile_id,
)

__all__ = [
    "Crawls",
    "Engine",
    "Orchestrator",
    "ProfileId",
    "TaskQueue",
    "get_crawl_engine",
    "get_crawl_repository",
    "get_job_repository",
    "get_orchestrator",
    "get_profile_id",
]
