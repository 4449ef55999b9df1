"""
SQLite Backend

Default store for local development and single-instance deployments
(sqlite+aiosqlite). Each session opens its own connection, so the click
worker's writes and the redirect's reads never share a transaction.
"""

from typing import Any

from sqlalchemy.pool import NullPool

from app.db.interface import DatabaseAdapter

# Seconds a connection waits on a locked database before failing; the
# click worker retries on top of this
BUSY_TIMEOUT_SECONDS = 15


class SQLiteAdapter(DatabaseAdapter):
    dialect = "sqlite"

    def pool_class(self) -> type[NullPool]:
        return NullPool

    def connect_args(self) -> dict[str, Any]:
        return {
            "check_same_thread": False,
            "timeout": BUSY_TIMEOUT_SECONDS,
        }

    def engine_options(self) -> dict[str, Any]:
        return {"echo": False}

    @property
    def batch_migrations(self) -> bool:
        return True

    def migration_url(self, database_url: str) -> str:
        """Alembic runs SQLite migrations on the synchronous pysqlite driver."""
        return database_url.replace("sqlite+aiosqlite://", "sqlite://", 1)
