"""Async engine and request-scoped sessions.

SQLite through aiosqlite is the default (local runs and tests); a
``postgresql+asyncpg://`` DATABASE_URL switches to a pooled PostgreSQL
engine. SQLite connections get ``PRAGMA foreign_keys=ON`` so deleting a
user also removes their therapy sessions, as it does on PostgreSQL.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mindbridge.app.core.config import settings
from mindbridge.app.core.logging import get_logger

logger = get_logger(__name__)

_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def is_sqlite_url(url: str) -> bool:
    return url.lower().startswith("sqlite")


@lru_cache(maxsize=1)
def get_async_engine(database_url: str | None = None) -> AsyncEngine:
    """Build the engine for ``database_url`` (default: settings) once.

    Call ``get_async_engine.cache_clear()`` after changing DATABASE_URL.
    """
    url = database_url or settings.database_url

    if is_sqlite_url(url):
        engine = create_async_engine(url, echo=False)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        logger.info("Using SQLite database")
        return engine

    engine = create_async_engine(
        url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )
    logger.info(
        f"Using PostgreSQL database (pool_size={settings.db_pool_size}, "
        f"max_overflow={settings.db_max_overflow})"
    )
    return engine


def get_async_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the current engine.

    Objects stay usable after commit so routers can serialize them.
    """
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            bind=get_async_engine(),
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_maker


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a session outside the request cycle (startup tasks, scripts).

    The caller commits; nothing is committed on exit.
    """
    async with get_async_session_maker()() as session:
        yield session


async def close_async_engine() -> None:
    """Dispose the engine and forget the cached engine and session factory."""
    global _session_maker

    try:
        await get_async_engine().dispose()
    except RuntimeError:
        # Raised when the engine was created on another (closed) event loop.
        logger.debug("Engine dispose skipped: event loop mismatch")

    get_async_engine.cache_clear()
    _session_maker = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request.

    Commits when the handler returns normally and rolls back if it raises
    (including ``HTTPException``), so a 4xx never leaves partial writes.
    """
    async with get_async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Usage: async def handler(session: SessionDep)
SessionDep = Annotated[AsyncSession, Depends(get_db)]
