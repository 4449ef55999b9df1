"""
Database Backend Interface

The service talks to its store through SQLAlchemy's async engine; the
backend-specific parts (pooling, driver arguments, how Alembic should
connect) live behind DatabaseAdapter so SQLite and PostgreSQL deployments
share every other line of code.

Workload the adapters are tuned for:
- The /go redirect issues short reads (link lookup, block list, fraud
  window counts) on a request-scoped session
- The click recording worker is the main writer, one short transaction
  per click
- The admin API writes rarely
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import Pool


class DatabaseAdapter(ABC):
    """
    Backend-specific engine configuration.

    Subclasses describe pooling and driver options; create_engine()
    assembles them. Adding a backend means a new subclass plus a branch in
    get_database_adapter().
    """

    dialect: str = ""

    @abstractmethod
    def pool_class(self) -> Optional[type[Pool]]:
        """Pool implementation, or None for SQLAlchemy's default queue pool."""

    @abstractmethod
    def engine_options(self) -> dict[str, Any]:
        pass

    def connect_args(self) -> dict[str, Any]:
        return {}

    @property
    def batch_migrations(self) -> bool:
        """Whether Alembic must recreate tables to alter them (SQLite)."""
        return False

    def migration_url(self, database_url: str) -> str:
        """URL Alembic should use; async URLs work unchanged unless overridden."""
        return database_url

    def create_engine(self, database_url: str, **overrides) -> AsyncEngine:
        """
        Build the async engine for `database_url`.

        Args:
            database_url: Connection string, including the async driver
            **overrides: Engine options taking precedence over the adapter's

        Returns:
            AsyncEngine shared by request sessions and the click worker
        """
        options = {**self.engine_options(), **overrides}
        pool = self.pool_class()
        if pool is not None:
            options.setdefault("poolclass", pool)
        return create_async_engine(database_url, connect_args=self.connect_args(), **options)
