"""
Repository layer for data access abstraction.

Engines and routers depend on the abstract repositories; the SQL
implementations own their sessions and translate driver errors into
PersistenceFailure.

Usage:
    from app.repositories import SqlCrawlRepository, SqlJobRepository
"""

from app.repositories.crawls import (
    AuditReport,
    CrawlRepository,
    CreditReservation,
    SqlCrawlRepository,
)
from app.repositories.jobs import JobRepository, SqlJobRepository

__all__ = [
    "AuditReport",
    "CrawlRepository",
    "CreditReservation",
    "JobRepository",
    "SqlCrawlRepository",
    "SqlJobRepository",
]
