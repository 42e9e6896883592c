"""Anonymous-to-user migration.

Everything a guest owned ends up under the user, overlapping progress
is merged max-wins, a second run is a no-op, and a failure part way
through leaves both stores exactly as they were.
"""

from __future__ import annotations

import asyncio
import uuid

import pytest

from app.core.errors import MigrationPartialFailure
from app.models.actor import AnonymousActor, UserActor
from app.repos.catalog_repo import InMemoryCatalog
from app.repos.unit_of_work import InMemoryUnitOfWork
from app.services import entitlement_service, migration_service, progress_service
from tests.conftest import HOUR, T0, FakeClock

X = uuid.uuid4()
Y = uuid.uuid4()
Z = uuid.uuid4()


@pytest.fixture
def uow() -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork()


@pytest.fixture
def cat() -> InMemoryCatalog:
    c = InMemoryCatalog()
    for asset_id in (X, Y, Z):
        c.add_asset(asset_id, 3600)
    return c


def _rent(uow, cat, actor, asset_id, clock) -> None:
    asyncio.run(
        entitlement_service.create_rental(
            uow,
            cat,
            actor,
            asset_id,
            transaction_id=f"txn-{uuid.uuid4()}",
            amount=399,
            payment_method="card",
            clock=clock,
        )
    )


def _watch(uow, cat, actor, asset_id, progress, clock) -> None:
    asyncio.run(progress_service.upsert(uow, cat, actor, asset_id, progress, 3600, clock=clock))


def _migrate(uow, anon, user, clock):
    return asyncio.run(migration_service.migrate(uow, anon, user, clock=clock))


def test_migrates_rentals_and_merges_progress(uow, cat) -> None:
    clock = FakeClock()
    anon = AnonymousActor(uuid.uuid4())
    user = UserActor(uuid.uuid4())

    _rent(uow, cat, anon, X, clock)
    _watch(uow, cat, anon, X, 500, clock)
    _watch(uow, cat, anon, Y, 120, clock)
    _watch(uow, cat, user, X, 300, clock)
    clock.advance(HOUR)

    result = _migrate(uow, anon, user, clock)
    assert result.migrated_rentals == 1
    assert result.migrated_progress == 2

    access = asyncio.run(entitlement_service.check_access(uow, cat, user, X, clock=clock))
    assert access.has_access is True

    user_rows = {p.asset_id: p for p in asyncio.run(progress_service.list_all(uow, user))}
    assert user_rows[X].progress_seconds == 500
    assert user_rows[X].created_at == T0
    assert user_rows[X].updated_at == T0 + HOUR
    assert user_rows[Y].progress_seconds == 120
    assert asyncio.run(progress_service.list_all(uow, anon)) == []
    assert asyncio.run(entitlement_service.list_rentals(uow, anon, include_all=True)) == []


def test_second_run_is_a_noop(uow, cat) -> None:
    clock = FakeClock()
    anon = AnonymousActor(uuid.uuid4())
    user = UserActor(uuid.uuid4())
    _rent(uow, cat, anon, X, clock)
    _watch(uow, cat, anon, Y, 60, clock)

    _migrate(uow, anon, user, clock)
    again = _migrate(uow, anon, user, clock)
    assert again.migrated_rentals == 0
    assert again.migrated_progress == 0
    assert len(asyncio.run(entitlement_service.list_rentals(uow, user, clock=clock))) == 1


def test_migrating_an_empty_guest(uow, cat) -> None:
    result = _migrate(uow, AnonymousActor(uuid.uuid4()), UserActor(uuid.uuid4()), FakeClock())
    assert (result.migrated_rentals, result.migrated_progress) == (0, 0)


def test_rental_count_is_preserved(uow, cat) -> None:
    clock = FakeClock()
    anon = AnonymousActor(uuid.uuid4())
    user = UserActor(uuid.uuid4())
    _rent(uow, cat, anon, X, clock)
    _rent(uow, cat, anon, Y, clock)
    _rent(uow, cat, user, Z, clock)

    _migrate(uow, anon, user, clock)
    rentals = asyncio.run(entitlement_service.list_rentals(uow, user, include_all=True))
    assert len(rentals) == 3


def test_overlapping_active_rentals_both_survive(uow, cat) -> None:
    clock = FakeClock()
    anon = AnonymousActor(uuid.uuid4())
    user = UserActor(uuid.uuid4())
    _rent(uow, cat, user, X, clock)
    clock.advance(60)
    _rent(uow, cat, anon, X, clock)

    result = _migrate(uow, anon, user, clock)
    assert result.migrated_rentals == 1
    rentals = asyncio.run(entitlement_service.list_rentals(uow, user, clock=clock))
    assert len(rentals) == 2
    status = asyncio.run(entitlement_service.get_status(uow, cat, user, X, clock=clock))
    assert status.rental == rentals[0]


def test_failure_rolls_back_both_stores(uow, cat, monkeypatch) -> None:
    clock = FakeClock()
    anon = AnonymousActor(uuid.uuid4())
    user = UserActor(uuid.uuid4())
    _rent(uow, cat, anon, X, clock)
    _watch(uow, cat, anon, X, 500, clock)

    async def boom(*args, **kwargs):
        raise RuntimeError("progress store unavailable")

    monkeypatch.setattr(uow.progress, "change_owner", boom)

    with pytest.raises(MigrationPartialFailure) as excinfo:
        _migrate(uow, anon, user, clock)
    assert isinstance(excinfo.value.__cause__, RuntimeError)

    # rentals were reassigned before the failure and must be back with the guest
    assert len(asyncio.run(entitlement_service.list_rentals(uow, anon, clock=clock))) == 1
    assert asyncio.run(entitlement_service.list_rentals(uow, user, include_all=True)) == []
    assert [p.asset_id for p in asyncio.run(progress_service.list_all(uow, anon))] == [X]
