"""Async database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from blindtest.config import settings


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on FK enforcement for every new SQLite connection.

    SQLite ignores ON DELETE CASCADE unless the pragma is set per connection.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _set_foreign_keys(dbapi_conn: Any, _record: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine, applying pool settings where the dialect supports them."""
    is_sqlite = make_url(url).get_backend_name() == "sqlite"
    if not is_sqlite:
        kwargs.setdefault("pool_size", settings.database_pool_size)
        kwargs.setdefault("max_overflow", settings.database_max_overflow)
        kwargs.setdefault("pool_pre_ping", True)

    engine = create_async_engine(url, echo=False, **kwargs)
    if is_sqlite:
        enable_sqlite_foreign_keys(engine)
    return engine


engine = create_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Session context manager for use outside of request handling (CLI, tasks)."""
    async with async_session_factory() as session:
        yield session


async def close_db() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
