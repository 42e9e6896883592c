"""Key/value cache for derived read models.

Holds the serialized continue-watching list per owner. Entries carry a
TTL so a lost invalidation only serves stale data for a bounded time;
progress writes, deletes and migrations also delete the entry directly.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from app.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...


class InMemoryCacheService:
    """Dict-backed cache for single-process runs. TTLs are ignored."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Cache shared by every API replica; keys live under `rental-cache:`."""

    namespace = "rental-cache:"

    def __init__(self, client) -> None:
        self._client = client

    def _k(self, key: str) -> str:
        return self.namespace + key

    async def get(self, key: str) -> str | None:
        return await self._client.get(self._k(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(self._k(key), value, ex=ttl_seconds)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self._client.delete(*(self._k(key) for key in keys))


cache_service: CacheService = (
    RedisCacheService(redis_pool) if redis_pool is not None else InMemoryCacheService()
)
