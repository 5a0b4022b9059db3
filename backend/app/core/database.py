"""
Database infrastructure.

This module provides the async SQLAlchemy engine, session factory,
and declarative base for all database models. The engine doubles as the
persistence gateway for jobs, crawls, pages and audit results.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, event, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import NullPool, Pool

from app.core.config import settings

# Configure logger
logger = logging.getLogger(__name__)

# JSON column type: JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Convert DATABASE_URL to use asyncpg driver if needed
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(
    database_url,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=False,
    pool_recycle=3600,  # Recycle connections after 1 hour
    echo=settings.DB_ECHO,  # Log SQL queries (controlled separately from DEBUG)
    pool_reset_on_return="rollback",
)

# Create async session factory with explicit transaction control
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Don't expire objects after commit (avoid extra queries)
    autocommit=False,
    autoflush=False,
)


def create_worker_session_factory() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Create an engine and session factory for a single Celery task run.

    Celery tasks drive async code through ``asyncio.run()``, which creates a
    fresh event loop per task. Pooled asyncpg connections are bound to the
    loop that created them, so workers use an unpooled engine that the task
    disposes when it finishes.

    Returns:
        Tuple of (engine, session factory)
    """
    worker_engine = create_async_engine(
        database_url,
        poolclass=NullPool,
        echo=settings.DB_ECHO,
    )
    factory = async_sessionmaker(
        worker_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return worker_engine, factory


class Base(DeclarativeBase):
    """
    Base class for all database models.

    Provides common columns that all models inherit:
    - created_at: Timezone-aware timestamp of record creation (UTC)
    - updated_at: Timezone-aware timestamp of last update (UTC)

    Models declare their own UUID primary key.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Connection pool event listeners for observability
@event.listens_for(Pool, "connect")
def receive_connect(dbapi_conn: Any, connection_record: Any) -> None:
    """Log when a new connection is established to the database."""
    logger.debug("Database connection established")


@event.listens_for(Pool, "checkin")
def receive_checkin(dbapi_conn: Any, connection_record: Any) -> None:
    """Log when a connection is returned to the pool."""
    logger.debug("Database connection returned to pool")


async def init_db() -> None:
    """
    Initialize database connection on application startup.

    Verifies that the database is accessible by executing a simple query,
    so the application fails fast if the database is not available.

    Raises:
        Exception: If database connection cannot be established
    """
    db_info = database_url.split("@")[-1] if "@" in database_url else "unknown"
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(
            "Database connection established successfully",
            extra={"database_url": db_info},
        )
    except Exception as e:
        logger.error(
            "Failed to connect to database",
            extra={"error": str(e), "database_url": db_info},
            exc_info=True,
        )
        raise


async def close_db() -> None:
    """Dispose of the connection pool on application shutdown."""
    await engine.dispose()
    logger.info("Database connections closed and pool disposed")


async def get_db_health() -> dict[str, Any]:
    """
    Check database health status.

    Returns:
        dict: Health status with 'status' and optional 'error' keys
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error("Database health check failed", extra={"error": str(e)}, exc_info=True)
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}
