"""Async database engine for the SQL-backed stores."""

from functools import lru_cache
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from leadhub.config.settings import get_settings

logger = structlog.get_logger(__name__)


def _engine_options(database_url: str, debug: bool) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": debug}
    # SQLite (tests, local dev) uses a static pool without sizing options
    if not database_url.startswith("sqlite"):
        options.update(pool_size=5, max_overflow=10, pool_pre_ping=True, pool_recycle=3600)
    return options


@lru_cache
def get_engine() -> AsyncEngine:
    """Return a cached async database engine (singleton per process)."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url, **_engine_options(settings.database_url, settings.debug)
    )


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create companies, users, memberships, login tokens and audit tables.

    Intended for development and tests; production schemas are managed
    outside the application.
    """
    import leadhub.models.database  # noqa: F401  (register tables)

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("database_initialized", tables=sorted(SQLModel.metadata.tables))


async def close_engine() -> None:
    """Dispose the cached engine's connection pool, if one was created."""
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
        get_engine.cache_clear()
