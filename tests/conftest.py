from __future__ import annotations

import sys
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import catalog, get_clock, in_memory_uow
from app.main import app
from app.services import identity_service, token_service
from app.services.cache import cache_service

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# 2023-11-14T22:13:20Z; any fixed instant works.
T0 = 1_700_000_000
HOUR = 3600

# Catalog used by the API tests: one feature film and a two-short pack.
MOVIE_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")
SHORT_A_ID = uuid.UUID("00000000-0000-4000-8000-000000000002")
SHORT_B_ID = uuid.UUID("00000000-0000-4000-8000-000000000003")
PACK_ID = uuid.UUID("00000000-0000-4000-8000-0000000000aa")
MOVIE_RUNTIME = 3600
SHORT_RUNTIME = 600


class FakeClock:
    """Callable stand-in for utc_now that only moves when told to."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Fresh rental/progress stores and an empty catalog for every test."""
    in_memory_uow.reset()
    catalog.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_dependency_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(clock: FakeClock) -> TestClient:
    """TestClient whose routes all read time from the `clock` fixture."""
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)


@pytest.fixture
def seeded_catalog() -> None:
    catalog.add_asset(MOVIE_ID, MOVIE_RUNTIME)
    catalog.add_asset(SHORT_A_ID, SHORT_RUNTIME)
    catalog.add_asset(SHORT_B_ID, SHORT_RUNTIME)
    catalog.add_pack(PACK_ID, [SHORT_A_ID, SHORT_B_ID])


def mint_token(user_id: uuid.UUID | None = None) -> str:
    """Create a valid ES256 session JWT for testing."""
    return token_service.create_access_token(sub=user_id or uuid.uuid4())


def mint_anonymous(now: int = T0) -> identity_service.AnonymousToken:
    """Create a signed anonymous id valid at `now`."""
    return identity_service.mint_anonymous_token(now)


def user_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(user_id)}"}


def anon_headers(token: str) -> dict[str, str]:
    return {"X-Anonymous-Id": token}


def rental_body(transaction_id: str | None = None, amount: int = 399) -> dict:
    return {
        "transaction_id": transaction_id or f"txn-{uuid.uuid4().hex[:12]}",
        "amount": amount,
        "payment_method": "card",
    }
