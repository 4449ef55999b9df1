"""
Persistence layer: SQLModel tables, backend adapters and session factories.
"""

from app.db.interface import DatabaseAdapter
from app.db.session import async_session_maker, engine, get_read_session, get_session

__all__ = [
    "DatabaseAdapter",
    "async_session_maker",
    "engine",
    "get_read_session",
    "get_session",
]
