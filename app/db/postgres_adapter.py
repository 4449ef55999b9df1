"""
PostgreSQL Backend

Production store (postgresql+asyncpg, installed with the 'postgres' extra).
Uses SQLAlchemy's queue pool sized from settings; pre-ping replaces
connections the server dropped while idle.
"""

from typing import Any, Optional

from sqlalchemy.pool import Pool

from app.core.setting import settings
from app.db.interface import DatabaseAdapter


class PostgreSQLAdapter(DatabaseAdapter):
    dialect = "postgresql"

    def __init__(self, pool_size: int = settings.DB_POOL_SIZE, max_overflow: int = settings.DB_MAX_OVERFLOW):
        self.pool_size = pool_size
        self.max_overflow = max_overflow

    def pool_class(self) -> Optional[type[Pool]]:
        return None

    def engine_options(self) -> dict[str, Any]:
        return {
            "echo": False,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_pre_ping": True,
        }
