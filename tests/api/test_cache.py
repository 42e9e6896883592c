"""Cache hit/miss/invalidation tests for the continue-watching list.

Verifies the read-through cache pattern:
1. First GET is a cache miss (populates cache from the progress store)
2. Second GET is a cache hit
3. PUT, DELETE and migration invalidate the owner's entry
4. Different owners have isolated cache entries
"""

from __future__ import annotations

import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from app.api.dependencies import in_memory_uow
from app.api.progress import continue_cache_key
from app.models.actor import UserActor
from app.services.cache import RedisCacheService, cache_service
from tests.conftest import (
    MOVIE_ID,
    SHORT_A_ID,
    anon_headers,
    mint_anonymous,
    user_headers,
)


def _sample(operation: str) -> float:
    value = REGISTRY.get_sample_value("cache_operations_total", {"operation": operation})
    return value if value is not None else 0.0


def _put(client: TestClient, headers: dict, asset_id=MOVIE_ID, progress: float = 600):
    return client.put(
        f"/v1/watch-progress/{asset_id}",
        json={"progress_seconds": progress, "duration_seconds": 3600},
        headers=headers,
    )


def _continue(client: TestClient, headers: dict) -> dict:
    resp = client.get("/v1/watch-progress/continue", headers=headers)
    assert resp.status_code == 200
    return resp.json()


def test_cache_miss_then_hit(client: TestClient, seeded_catalog) -> None:
    user_id = uuid.uuid4()
    headers = user_headers(user_id)
    _put(client, headers)

    misses, hits = _sample("miss"), _sample("hit")
    first = _continue(client, headers)
    second = _continue(client, headers)

    assert first == second
    assert _sample("miss") - misses == 1
    assert _sample("hit") - hits == 1
    assert cache_service._store.get(continue_cache_key(UserActor(user_id))) is not None  # type: ignore[union-attr]


def test_put_invalidates(client: TestClient, seeded_catalog) -> None:
    headers = user_headers(uuid.uuid4())
    _put(client, headers)
    assert _continue(client, headers)["total"] == 1

    _put(client, headers, SHORT_A_ID, 30)
    assert _continue(client, headers)["total"] == 2


def test_delete_invalidates(client: TestClient, seeded_catalog) -> None:
    headers = user_headers(uuid.uuid4())
    _put(client, headers)
    assert _continue(client, headers)["total"] == 1

    client.delete(f"/v1/watch-progress/{MOVIE_ID}", headers=headers)
    assert _continue(client, headers)["total"] == 0


def test_migration_invalidates_both_owners(client: TestClient, seeded_catalog) -> None:
    guest_token = mint_anonymous().token
    guest = anon_headers(guest_token)
    user = user_headers(uuid.uuid4())
    _put(client, guest)
    assert _continue(client, guest)["total"] == 1
    assert _continue(client, user)["total"] == 0

    resp = client.post("/v1/migrate", json={"anonymous_token": guest_token}, headers=user)
    assert resp.status_code == 200

    assert _continue(client, user)["total"] == 1
    assert _continue(client, guest)["total"] == 0



def test_invalidation_runs_after_commit(
    client: TestClient, seeded_catalog, monkeypatch: pytest.MonkeyPatch
) -> None:
    order: list[str] = []
    real_delete = cache_service.delete

    async def commit() -> None:
        order.append("commit")

    async def delete(*keys: str) -> None:
        order.append("invalidate")
        await real_delete(*keys)

    monkeypatch.setattr(in_memory_uow, "commit", commit)
    monkeypatch.setattr(cache_service, "delete", delete)

    guest_token = mint_anonymous().token
    guest = anon_headers(guest_token)
    _put(client, guest)
    assert client.delete(f"/v1/watch-progress/{MOVIE_ID}", headers=guest).json()["deleted"]
    _put(client, guest)
    resp = client.post(
        "/v1/migrate", json={"anonymous_token": guest_token}, headers=user_headers(uuid.uuid4())
    )
    assert resp.status_code == 200

    # put, delete, put, migrate
    assert order == ["commit", "invalidate"] * 4


def test_cache_is_owner_isolated(client: TestClient, seeded_catalog) -> None:
    a = user_headers(uuid.uuid4())
    b = user_headers(uuid.uuid4())
    _put(client, a)
    assert _continue(client, a)["total"] == 1
    assert _continue(client, b)["total"] == 0


class _RecordingRedis:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.data: dict[str, str] = {}

    async def get(self, key):
        self.calls.append(("get", key))
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.calls.append(("set", key, ex))
        self.data[key] = value

    async def delete(self, *keys):
        self.calls.append(("delete", *keys))
        for key in keys:
            self.data.pop(key, None)


def test_redis_cache_namespaces_keys_and_sets_ttl() -> None:
    fake = _RecordingRedis()
    cache = RedisCacheService(fake)

    async def scenario():
        await cache.set("continue:User:1", "[]", 120)
        hit = await cache.get("continue:User:1")
        await cache.delete("continue:User:1", "continue:Anon:2")
        await cache.delete()
        return hit

    assert asyncio.run(scenario()) == "[]"
    assert fake.calls == [
        ("set", "rental-cache:continue:User:1", 120),
        ("get", "rental-cache:continue:User:1"),
        ("delete", "rental-cache:continue:User:1", "rental-cache:continue:Anon:2"),
    ]
