"""Alembic environment for the rentals and watch_progress schema.

Migrations reuse the service's asyncpg driver: the engine is async and
each migration batch runs inside connection.run_sync(). The URL comes
from DATABASE_URL when set, so migrations target the same database the
service reads.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

import app.db.tables  # noqa: F401  registers RentalRow and WatchProgressRow
from alembic import context
from app.core.config import SETTINGS
from app.db.engine import Base

config = context.config
if SETTINGS.database_url:
    config.set_main_option("sqlalchemy.url", SETTINGS.database_url)
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def _apply_online() -> None:
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _configure_offline()
else:
    asyncio.run(_apply_online())
