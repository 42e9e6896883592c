"""Redis client for the continue-watching cache.

Only cached reads go through Redis; rentals and progress stay in
PostgreSQL. With REDIS_URL unset, `redis_pool` is None and
app.services.cache falls back to a process-local dict.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)


def _build_client(url: str) -> aioredis.Redis:  # type: ignore[type-arg]
    return aioredis.from_url(
        url,
        decode_responses=True,
        max_connections=20,
        # A slow cache must not stall a progress write.
        socket_connect_timeout=1.0,
        socket_timeout=1.0,
        health_check_interval=30,
    )


redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    _build_client(SETTINGS.redis_url) if SETTINGS.redis_url else None
)


@asynccontextmanager
async def lifespan_redis() -> AsyncIterator[None]:
    """Ping on startup and close the pool on shutdown.

    A failed ping is logged and startup continues: every cached read
    has a database fallback.
    """
    if redis_pool is None:
        logger.info("Cache: in-memory (REDIS_URL not set)")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
    except (RedisError, OSError):
        logger.exception("Cache: redis ping failed at startup")
    else:
        logger.info("Cache: redis reachable")

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Cache: redis pool closed")
