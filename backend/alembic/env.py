"""
Alembic environment for the crawl-and-audit schema.

There is no alembic.ini: script location and file template come from the
``[tool.alembic]`` table of the repository pyproject.toml, and the database
URL comes from application settings (normalized to the asyncpg driver).
Online migrations run through an async engine without pooling.
"""

import asyncio
import sys
import tomllib
from logging.config import dictConfig
from pathlib import Path

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_dir))

from app.core.database import Base, database_url  # noqa: E402

import app.models  # noqa: E402,F401

PYPROJECT_OPTIONS = ("script_location", "file_template", "prepend_sys_path", "version_path_separator")

config = context.config
target_metadata = Base.metadata


def _load_pyproject_options() -> None:
    pyproject_path = backend_dir.parent / "pyproject.toml"
    if not pyproject_path.exists():
        return
    with open(pyproject_path, "rb") as f:
        options = tomllib.load(f).get("tool", {}).get("alembic", {})
    for key in PYPROJECT_OPTIONS:
        if key in options:
            config.set_main_option(key, options[key])


def _configure_logging() -> None:
    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"generic": {"format": "%(levelname)-5.5s [%(name)s] %(message)s"}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "generic",
            },
        },
        "root": {"level": "WARN", "handlers": ["console"]},
        "loggers": {"alembic": {"level": "INFO"}},
    })


def _configure_context(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL to the script output instead of executing it."""
    _configure_context(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure_context(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await connectable.dispose()


_load_pyproject_options()
_configure_logging()
config.set_main_option("sqlalchemy.url", database_url)

if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
