"""
Alembic environment for the affiliate redirect schema.

The connection comes from DATABASE_URL via the same adapter the application
uses: SQLite migrates on the sync driver in batch mode, PostgreSQL on
asyncpg through an async engine.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from app.core.setting import settings
from app.db import models  # noqa: F401  registers the affiliate tables on SQLModel.metadata
from app.db.session import get_database_adapter

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

adapter = get_database_adapter(settings.DATABASE_URL)
migration_url = adapter.migration_url(settings.DATABASE_URL)
config.set_main_option("sqlalchemy.url", migration_url)

target_metadata = SQLModel.metadata


def configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=adapter.batch_migrations,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    configure(url=migration_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def migrate(connection: Connection) -> None:
    configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def migrate_async() -> None:
    connectable = create_async_engine(migration_url, poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(migrate)
    await connectable.dispose()


def run_migrations_online() -> None:
    if adapter.dialect == "sqlite":
        connectable = create_engine(migration_url, poolclass=pool.NullPool)
        with connectable.connect() as connection:
            migrate(connection)
        connectable.dispose()
    else:
        asyncio.run(migrate_async())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
