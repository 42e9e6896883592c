"""PostgreSQL access for rentals and watch progress.

DATABASE_URL selects storage. When set, an asyncpg-backed engine is
built at import and every request shares one AsyncSession between the
rental and progress repos. When unset, both `engine` and
`async_session_factory` stay None and app.api.dependencies hands out the
in-memory unit of work instead.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

APPLICATION_NAME = "rental-service"


class Base(DeclarativeBase):
    pass


def _build_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=SETTINGS.is_dev and SETTINGS.log_level == "debug",
        pool_size=10,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=1800,
        # Shows up in pg_stat_activity next to advisory-lock waits.
        connect_args={"server_settings": {"application_name": APPLICATION_NAME}},
    )


engine: AsyncEngine | None = _build_engine(SETTINGS.database_url) if SETTINGS.database_url else None
async_session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(engine, expire_on_commit=False) if engine is not None else None
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; commit if the handler returns, roll back if it raises."""
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not set, no database session available")
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()


@asynccontextmanager
async def lifespan_db() -> AsyncIterator[None]:
    if engine is None:
        logger.info("Storage: in-memory (DATABASE_URL not set)")
        yield
        return

    logger.info("Storage: postgres at %s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database pool disposed")
