"""Async engine and session wiring plus schema bootstrap for the task store.

``init_db`` brings the schema up to date at startup. With auto-migrate on it
compares the database's alembic revision against the script head and only
upgrades when they differ; otherwise it creates missing tables directly.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from taskdesk import models as _models
from taskdesk.core.config import PROJECT_ROOT, settings
from taskdesk.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.engine import Connection

# Table models must be imported before metadata is used.
_MODEL_REGISTRY = _models
_ASYNC_DRIVERS = {
    "postgresql": "postgresql+psycopg",
    "sqlite": "sqlite+aiosqlite",
}

logger = get_logger(__name__)


def _normalize_database_url(database_url: str) -> str:
    """Give a bare ``postgresql://`` or ``sqlite://`` URL its async driver."""
    scheme, sep, rest = database_url.partition("://")
    if not sep:
        return database_url
    return f"{_ASYNC_DRIVERS.get(scheme, scheme)}://{rest}"


def _engine_options(database_url: str) -> dict[str, Any]:
    # An in-memory SQLite database lives on one connection; share it.
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


_database_url = _normalize_database_url(settings.database_url)
async_engine: AsyncEngine = create_async_engine(_database_url, **_engine_options(_database_url))
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def _alembic_config() -> Config:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    config.attributes["configure_logger"] = False
    return config


def _head_revision() -> str | None:
    return ScriptDirectory.from_config(_alembic_config()).get_current_head()


def _read_revision(connection: Connection) -> str | None:
    return MigrationContext.configure(connection).get_current_revision()


async def _current_revision() -> str | None:
    async with async_engine.connect() as conn:
        return await conn.run_sync(_read_revision)


def run_migrations() -> None:
    """Upgrade the task database to the newest alembic revision."""
    from alembic import command

    logger.info("db.migrations.start")
    command.upgrade(_alembic_config(), "head")
    logger.info("db.migrations.complete")


async def create_schema() -> None:
    """Create any missing tables straight from model metadata."""
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def init_db() -> None:
    """Bring the schema up to date before the app serves requests."""
    if not settings.db_auto_migrate:
        await create_schema()
        return

    head = _head_revision()
    if head is None:
        logger.warning("db.migrations.missing fallback=create_all")
        await create_schema()
        return

    current = await _current_revision()
    if current == head:
        logger.info("db.migrations.current revision=%s", head)
        return
    logger.info("db.migrations.pending current=%s head=%s", current, head)
    await asyncio.to_thread(run_migrations)


async def dispose_engine() -> None:
    """Close pooled connections at shutdown."""
    await async_engine.dispose()


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield one session per request; an open transaction is rolled back at the end."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                try:
                    await session.rollback()
                except SQLAlchemyError:
                    logger.exception("db.session.rollback_failed")
