"""Job Orchestrator: deferred jobs, their handlers and research collaborators."""

from app.jobs.handlers import DefaultJobHandlers, JobContext, JobHandler, expected_items
from app.jobs.orchestrator import JobOrchestrator, JobRunResult
from app.jobs.research import DataForSEOClient, ResearchDataClient

__all__ = [
    "DataForSEOClient",
    "DefaultJobHandlers",
    "JobContext",
    "JobHandler",
    "JobOrchestrator",
    "JobRunResult",
    "ResearchDataClient",
    "expected_items",
]
