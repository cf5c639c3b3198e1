"""PostgreSQL access for the aurum schema.

One engine per process, created lazily from settings. Request handlers get
a session through ``get_session``; the unit of work commits only when the
handler returns normally.
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import DatabaseConfig, get_settings

logger = logging.getLogger(__name__)

# Repositories qualify every table with this schema
DB_SCHEMA = "aurum"

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def connection_settings(config: DatabaseConfig) -> dict[str, str]:
    """Server settings applied to every pooled asyncpg connection."""
    return {
        "timezone": "UTC",
        "search_path": f"{DB_SCHEMA},public",
        "statement_timeout": str(config.statement_timeout_ms),
        "application_name": get_settings().app.name,
    }


def build_engine(config: DatabaseConfig) -> AsyncEngine:
    engine = create_async_engine(
        config.async_url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=True,
        connect_args={
            "server_settings": connection_settings(config),
            "timeout": config.connect_timeout,
        },
    )
    logger.info(
        "Database engine created",
        extra={"host": config.host, "port": config.port, "database": config.name},
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows are read back after commit when building responses
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings().database)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def reset_engine() -> None:
    """Dispose the pool; the next call to ``get_engine`` starts a fresh one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """One unit of work: commit on clean exit, roll back on any exception.

    Per-item savepoints opened inside the scope roll back on their own; only
    an exception escaping the scope discards the whole unit.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


async def get_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency wrapping ``session_scope``."""
    async with session_scope() as session:
        yield session


async def ping_database() -> None:
    """Round-trip a trivial query. Raises SQLAlchemyError or OSError when unreachable."""
    async with get_engine().connect() as connection:
        await connection.execute(text("SELECT 1"))
