"""
Shared plumbing for SQL repositories.

Repositories own their sessions: every public method opens a session from
the injected ``async_sessionmaker`` and runs in exactly one transaction, so a
method call is the unit of durability that progress subscribers observe.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import AsyncSessionLocal
from app.core.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


class SqlRepository:
    """Base class for repositories backed by an async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or AsyncSessionLocal

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """
        Open a session and transaction, translating driver errors.

        Args:
            operation: Short name of the operation, used in logs and messages

        Raises:
            PersistenceFailure: If SQLAlchemy raises while the block runs or commits
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(
                "Database operation failed",
                extra={"operation": operation, "error": str(e)},
                exc_info=True,
            )
            raise PersistenceFailure(f"Failed to {operation}", cause=e) from e
