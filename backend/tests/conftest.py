"""
Pytest configuration and fixtures for testing.

Provides an in-memory SQLite database (aiosqlite) with the full schema,
SQL repositories bound to it, and helpers for seeding profiles and projects.
"""

import os
import uuid
from pathlib import Path

import pytest

os.environ.setdefault("TESTING", "true")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.core.config import Settings  # noqa: E402
from app.core.database import Base  # noqa: E402
from app.models.profile import Profile  # noqa: E402
from app.models.project import Project  # noqa: E402
from app.repositories.crawls import SqlCrawlRepository  # noqa: E402
from app.repositories.jobs import SqlJobRepository  # noqa: E402


def pytest_configure(config):
    """
    Pytest hook that runs before test collection.

    Loads .env.test when present so local overrides apply before any
    app settings are read.
    """
    from dotenv import load_dotenv

    test_env_path = Path(__file__).parent.parent / ".env.test"
    if test_env_path.exists():
        load_dotenv(test_env_path, override=True)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with pacing disabled and no external credentials."""
    return Settings(
        TESTING=True,
        CRAWL_REQUEST_DELAY_SECONDS=0.0,
        DATAFORSEO_MIN_INTERVAL_SECONDS=0.0,
        DATAFORSEO_API_KEY="",
        FIRECRAWL_API_KEY="",
        OPENAI_API_KEY="",
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def crawl_repository(session_factory) -> SqlCrawlRepository:
    return SqlCrawlRepository(session_factory)


@pytest.fixture
def job_repository(session_factory) -> SqlJobRepository:
    return SqlJobRepository(session_factory)


@pytest.fixture
def seed_project(session_factory):
    """Factory creating a profile and a project it owns.

    Returns:
        Async callable returning (profile, project)
    """

    async def _seed(plan_type: str = "free", credits: int = 100, domain: str = "example.com"):
        profile = Profile(plan_type=plan_type, credits=credits, email="owner@example.com")
        project = Project(id=uuid.uuid4(), owner_id=profile.id, name="Example", domain=domain)
        async with session_factory() as session:
            async with session.begin():
                session.add(profile)
                session.add(project)
        return profile, project

    return _seed
