from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.core.errors import DuplicateRental, DuplicateTransaction
from app.models.actor import ActorId
from app.models.rental import Rental


class RentalRepo(Protocol):
    async def add(self, rental: Rental) -> None: ...
    async def get(self, rental_id: UUID) -> Rental | None: ...
    async def list_by_owner(self, owner: ActorId) -> list[Rental]: ...
    async def latest_for_asset(self, owner: ActorId, asset_id: UUID) -> Rental | None: ...
    async def latest_for_pack(self, owner: ActorId, pack_id: UUID) -> Rental | None: ...
    async def active_packs(self, owner: ActorId, now: int) -> list[Rental]: ...
    async def reassign_owner(self, source: ActorId, target: ActorId) -> int: ...
    async def set_current_asset(
        self, rental_id: UUID, current_asset_id: UUID
    ) -> Rental | None: ...


def _newest_first(rentals: list[Rental]) -> list[Rental]:
    return sorted(rentals, key=lambda r: r.purchased_at, reverse=True)


class InMemoryRentalRepo:
    """Dict-backed store. Rows are never removed.

    add() checks and inserts without awaiting in between, so two
    coroutines racing on the same slot cannot both pass the check.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, Rental] = {}
        self._transactions: set[str] = set()

    async def add(self, rental: Rental) -> None:
        if rental.transaction_id in self._transactions:
            raise DuplicateTransaction(rental.transaction_id)
        now = rental.purchased_at
        for existing in self._by_id.values():
            if (
                existing.owner == rental.owner
                and existing.asset_id == rental.asset_id
                and existing.pack_id == rental.pack_id
                and existing.is_active(now)
            ):
                raise DuplicateRental(rental.owner.key, rental.target)
        self._by_id[rental.id] = rental
        self._transactions.add(rental.transaction_id)

    async def get(self, rental_id: UUID) -> Rental | None:
        return self._by_id.get(rental_id)

    async def list_by_owner(self, owner: ActorId) -> list[Rental]:
        return _newest_first([r for r in self._by_id.values() if r.owner == owner])

    async def latest_for_asset(self, owner: ActorId, asset_id: UUID) -> Rental | None:
        matches = [
            r for r in self._by_id.values() if r.owner == owner and r.asset_id == asset_id
        ]
        return _newest_first(matches)[0] if matches else None

    async def latest_for_pack(self, owner: ActorId, pack_id: UUID) -> Rental | None:
        matches = [
            r for r in self._by_id.values() if r.owner == owner and r.pack_id == pack_id
        ]
        return _newest_first(matches)[0] if matches else None

    async def active_packs(self, owner: ActorId, now: int) -> list[Rental]:
        return _newest_first(
            [
                r
                for r in self._by_id.values()
                if r.owner == owner and r.is_pack and r.is_active(now)
            ]
        )

    async def reassign_owner(self, source: ActorId, target: ActorId) -> int:
        moved = 0
        for rental_id, rental in list(self._by_id.items()):
            if rental.owner == source:
                self._by_id[rental_id] = replace(rental, owner=target)
                moved += 1
        return moved

    async def set_current_asset(
        self, rental_id: UUID, current_asset_id: UUID
    ) -> Rental | None:
        r = self._by_id.get(rental_id)
        if r is None:
            return None

        updated = replace(r, current_asset_id=current_asset_id)
        self._by_id[rental_id] = updated
        return updated

    # --- snapshot support for InMemoryUnitOfWork ---

    def snapshot(self) -> tuple[dict[UUID, Rental], set[str]]:
        return dict(self._by_id), set(self._transactions)

    def restore(self, state: tuple[dict[UUID, Rental], set[str]]) -> None:
        by_id, transactions = state
        self._by_id = dict(by_id)
        self._transactions = set(transactions)
