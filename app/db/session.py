"""
Engine and Session Factories

One async engine per process, built by the adapter matching DATABASE_URL.
Three kinds of session come out of it:

- get_session: admin API dependency, commits on success, rolls back on error
- get_read_session: /go dependency, never commits
- async_session_maker(): used directly by the click recording worker, one
  session per persistence attempt
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from app.core.setting import settings
from app.db.interface import DatabaseAdapter
from app.db.postgres_adapter import PostgreSQLAdapter
from app.db.sqlite_adapter import SQLiteAdapter


def get_database_adapter(database_url: str) -> DatabaseAdapter:
    """Pick the backend from the URL scheme (PostgreSQL, else SQLite)."""
    if database_url.startswith("postgresql"):
        return PostgreSQLAdapter()
    return SQLiteAdapter()


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Loaded rows stay usable after commit; the worker and admin API read
    # ids and counters back after writing
    return async_sessionmaker(
        bind,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


db_adapter = get_database_adapter(settings.DATABASE_URL)
engine = db_adapter.create_engine(settings.DATABASE_URL)
async_session_maker = create_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for admin endpoints that write.

    Usage:
        @admin_router.post("/blocked-ips")
        async def block_ip(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_read_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for the /go redirect; closing the session discards its read transaction."""
    async with async_session_maker() as session:
        yield session


async def dispose_engine() -> None:
    """Close pooled connections at shutdown, after the click worker has drained."""
    await engine.dispose()
