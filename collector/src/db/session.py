"""
Async database engine and session factory.

Uses the SQLAlchemy 2.x async engine with the aiosqlite driver. Every new
connection is switched to WAL journal mode so readers do not block the
collection tick while it writes.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-008)
"""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from collector.src.db.models import Base


def database_url(path: str | Path) -> str:
    """Return the aiosqlite connection URL for a database file path."""
    return f"sqlite+aiosqlite:///{Path(path)}"


def _enable_wal(dbapi_connection, _connection_record) -> None:  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


def create_engine(path: str | Path) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the SQLite file at *path*.

    Args:
        path: Filesystem path of the SQLite database file.

    Returns:
        AsyncEngine: Configured async engine with WAL enabled.
    """
    engine = create_async_engine(database_url(path), echo=False)
    event.listen(engine.sync_engine, "connect", _enable_wal)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to *engine*."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables and indexes that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
