"""Rental entitlement: who may watch what, right now.

Status is derived from expires_at on every call; nothing is stored as
"expired". All functions take an injected clock so tests can sit exactly
on the expiry and grace boundaries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from app.core.clock import Clock, utc_now
from app.core.config import SETTINGS
from app.core.errors import (
    AssetNotFound,
    DuplicateRental,
    DuplicateTransaction,
    PackNotFound,
    RentalNotFound,
)
from app.core.metrics import ACCESS_CHECKS, RENTAL_CONFLICTS, RENTALS_CREATED
from app.models.actor import ActorId
from app.models.rental import Rental, RentalState
from app.repos.catalog_repo import Catalog
from app.repos.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

AccessType = Literal["direct", "pack"]

# Window for list_rentals(include_recent=True).
RECENT_WINDOW_SECONDS = 24 * 3600


@dataclass(frozen=True, slots=True)
class AccessResult:
    has_access: bool
    access_type: AccessType | None = None
    rental: Rental | None = None


@dataclass(frozen=True, slots=True)
class RentalStatus:
    """rental is set only while active.

    expired is None when the owner never rented the target at all.
    """

    rental: Rental | None
    expired: bool | None = None
    expired_at: int | None = None


async def check_access(
    uow: UnitOfWork,
    catalog: Catalog,
    actor: ActorId,
    asset_id: UUID,
    *,
    clock: Clock = utc_now,
) -> AccessResult:
    now = clock()
    direct = await uow.rentals.latest_for_asset(actor, asset_id)
    if direct is not None and direct.is_active(now):
        ACCESS_CHECKS.labels(result="direct").inc()
        return AccessResult(has_access=True, access_type="direct", rental=direct)

    pack = await _covering_pack(uow, catalog, actor, asset_id, now)
    if pack is not None:
        ACCESS_CHECKS.labels(result="pack").inc()
        return AccessResult(has_access=True, access_type="pack", rental=pack)

    ACCESS_CHECKS.labels(result="denied").inc()
    return AccessResult(has_access=False)


async def _covering_pack(
    uow: UnitOfWork, catalog: Catalog, actor: ActorId, asset_id: UUID, now: int
) -> Rental | None:
    for rental in await uow.rentals.active_packs(actor, now):
        if rental.pack_id is None:
            continue
        if asset_id in await catalog.pack_members(rental.pack_id):
            return rental
    return None


def _status_from(rental: Rental | None, now: int) -> RentalStatus | None:
    if rental is None:
        return None
    if rental.is_active(now):
        return RentalStatus(rental=rental)
    return RentalStatus(rental=None, expired=True, expired_at=rental.expires_at)


async def get_status(
    uow: UnitOfWork,
    catalog: Catalog,
    actor: ActorId,
    asset_id: UUID,
    *,
    clock: Clock = utc_now,
) -> RentalStatus:
    now = clock()
    direct = _status_from(await uow.rentals.latest_for_asset(actor, asset_id), now)
    if direct is not None and direct.rental is not None:
        return direct

    # An expired direct rental can still be covered by an active pack.
    pack = await _covering_pack(uow, catalog, actor, asset_id, now)
    if pack is not None:
        return RentalStatus(rental=pack)

    return direct or RentalStatus(rental=None)


async def get_pack_status(
    uow: UnitOfWork,
    actor: ActorId,
    pack_id: UUID,
    *,
    clock: Clock = utc_now,
) -> RentalStatus:
    status = _status_from(await uow.rentals.latest_for_pack(actor, pack_id), clock())
    return status or RentalStatus(rental=None)


def _in_grace(rental: Rental | None, now: int, grace_seconds: int | None) -> bool:
    if rental is None:
        return False
    grace = SETTINGS.grace_period_seconds if grace_seconds is None else grace_seconds
    return rental.state_at(now, grace) is RentalState.EXPIRED


async def is_within_grace(
    uow: UnitOfWork,
    actor: ActorId,
    asset_id: UUID,
    grace_seconds: int | None = None,
    *,
    clock: Clock = utc_now,
) -> bool:
    """True only between expires_at (inclusive) and expires_at + grace (exclusive)."""
    rental = await uow.rentals.latest_for_asset(actor, asset_id)
    return _in_grace(rental, clock(), grace_seconds)


async def is_pack_within_grace(
    uow: UnitOfWork,
    actor: ActorId,
    pack_id: UUID,
    grace_seconds: int | None = None,
    *,
    clock: Clock = utc_now,
) -> bool:
    rental = await uow.rentals.latest_for_pack(actor, pack_id)
    return _in_grace(rental, clock(), grace_seconds)


async def _record(uow: UnitOfWork, rental: Rental, kind: str) -> Rental:
    try:
        await uow.rentals.add(rental)
    except DuplicateRental:
        RENTAL_CONFLICTS.labels(reason="active_rental").inc()
        logger.warning(
            "Rejected duplicate rental owner=%s %s", rental.owner.key, rental.target
        )
        raise
    except DuplicateTransaction:
        RENTAL_CONFLICTS.labels(reason="transaction").inc()
        logger.warning("Rejected reused transaction_id=%s", rental.transaction_id)
        raise
    RENTALS_CREATED.labels(kind=kind).inc()
    logger.info(
        "Created rental id=%s owner=%s %s expires_at=%d",
        rental.id,
        rental.owner.key,
        rental.target,
        rental.expires_at,
    )
    return rental


async def create_rental(
    uow: UnitOfWork,
    catalog: Catalog,
    actor: ActorId,
    asset_id: UUID,
    *,
    transaction_id: str,
    amount: int,
    payment_method: str,
    currency: str = "USD",
    clock: Clock = utc_now,
) -> Rental:
    if not await catalog.asset_exists(asset_id):
        raise AssetNotFound(asset_id)
    rental = Rental.new(
        owner=actor,
        asset_id=asset_id,
        purchased_at=clock(),
        duration_seconds=SETTINGS.rental_duration_seconds,
        transaction_id=transaction_id,
        amount=amount,
        currency=currency,
        payment_method=payment_method,
    )
    return await _record(uow, rental, "direct")


async def create_pack_rental(
    uow: UnitOfWork,
    catalog: Catalog,
    actor: ActorId,
    pack_id: UUID,
    *,
    transaction_id: str,
    amount: int,
    payment_method: str,
    currency: str = "USD",
    clock: Clock = utc_now,
) -> Rental:
    if not await catalog.pack_exists(pack_id):
        raise PackNotFound(pack_id)
    rental = Rental.new(
        owner=actor,
        pack_id=pack_id,
        purchased_at=clock(),
        duration_seconds=SETTINGS.rental_duration_seconds,
        transaction_id=transaction_id,
        amount=amount,
        currency=currency,
        payment_method=payment_method,
    )
    return await _record(uow, rental, "pack")


async def list_rentals(
    uow: UnitOfWork,
    actor: ActorId,
    *,
    include_recent: bool = False,
    include_all: bool = False,
    clock: Clock = utc_now,
) -> list[Rental]:
    """Active rentals, newest purchase first.

    include_recent adds those that expired in the last 24 hours;
    include_all returns everything the actor ever rented.
    """
    rentals = await uow.rentals.list_by_owner(actor)
    if include_all:
        return rentals
    now = clock()
    cutoff = now - RECENT_WINDOW_SECONDS if include_recent else now
    return [r for r in rentals if r.expires_at > cutoff]


async def update_pack_position(
    uow: UnitOfWork,
    catalog: Catalog,
    actor: ActorId,
    rental_id: UUID,
    current_asset_id: UUID,
    *,
    clock: Clock = utc_now,
) -> Rental:
    rental = await uow.rentals.get(rental_id)
    if (
        rental is None
        or rental.owner != actor
        or rental.pack_id is None
        or not rental.is_active(clock())
    ):
        raise RentalNotFound(f"no active pack rental {rental_id} for {actor.key}")

    if current_asset_id not in await catalog.pack_members(rental.pack_id):
        raise AssetNotFound(current_asset_id)

    updated = await uow.rentals.set_current_asset(rental_id, current_asset_id)
    if updated is None:
        raise RentalNotFound(f"rental {rental_id} disappeared")
    logger.debug("Pack rental %s now at asset=%s", rental_id, current_asset_id)
    return updated


def remaining_seconds(rental: Rental, *, clock: Clock = utc_now) -> int:
    return rental.remaining_seconds(clock())


def remaining_grace_seconds(
    rental: Rental, grace_seconds: int | None = None, *, clock: Clock = utc_now
) -> int:
    grace = SETTINGS.grace_period_seconds if grace_seconds is None else grace_seconds
    return rental.remaining_grace_seconds(clock(), grace)
