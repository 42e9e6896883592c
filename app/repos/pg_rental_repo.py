"""PostgreSQL implementation of RentalRepo."""

from __future__ import annotations

import hashlib
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicateRental, DuplicateTransaction
from app.db.tables import TRANSACTION_ID_CONSTRAINT, RentalRow
from app.models.actor import ActorId, actor_from_columns, owner_columns
from app.models.rental import Rental


def _owner_clause(owner: ActorId):
    user_id, anonymous_id = owner_columns(owner)
    if user_id is not None:
        return RentalRow.user_id == user_id
    return RentalRow.anonymous_id == anonymous_id


def _slot_lock_key(rental: Rental) -> int:
    """Signed 64-bit key for pg_advisory_xact_lock, one per (owner, target)."""
    digest = hashlib.blake2b(
        f"{rental.owner.key}|{rental.target}".encode(), digest_size=8
    ).digest()
    return int.from_bytes(digest, "big", signed=True)


class PgRentalRepo:
    """Satisfies the RentalRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, rental: Rental) -> None:
        # Serializes concurrent purchases of the same slot until commit.
        await self._session.execute(select(func.pg_advisory_xact_lock(_slot_lock_key(rental))))

        dup_tx = select(RentalRow.id).where(
            RentalRow.transaction_id == rental.transaction_id
        )
        if (await self._session.execute(dup_tx)).first() is not None:
            raise DuplicateTransaction(rental.transaction_id)

        active = select(RentalRow.id).where(
            _owner_clause(rental.owner),
            RentalRow.expires_at > rental.purchased_at,
        )
        if rental.asset_id is not None:
            active = active.where(RentalRow.asset_id == rental.asset_id)
        else:
            active = active.where(RentalRow.pack_id == rental.pack_id)
        if (await self._session.execute(active.limit(1))).first() is not None:
            raise DuplicateRental(rental.owner.key, rental.target)

        user_id, anonymous_id = owner_columns(rental.owner)
        row = RentalRow(
            id=rental.id,
            user_id=user_id,
            anonymous_id=anonymous_id,
            asset_id=rental.asset_id,
            pack_id=rental.pack_id,
            current_asset_id=rental.current_asset_id,
            purchased_at=rental.purchased_at,
            expires_at=rental.expires_at,
            transaction_id=rental.transaction_id,
            amount=rental.amount,
            currency=rental.currency,
            payment_method=rental.payment_method,
        )
        # The slot lock does not cover a transaction id reused on another
        # slot; the unique constraint decides that race.
        try:
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError as e:
            if TRANSACTION_ID_CONSTRAINT in str(e.orig):
                raise DuplicateTransaction(rental.transaction_id) from e
            raise

    async def get(self, rental_id: UUID) -> Rental | None:
        stmt = select(RentalRow).where(RentalRow.id == rental_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_rental(row)

    async def list_by_owner(self, owner: ActorId) -> list[Rental]:
        stmt = (
            select(RentalRow)
            .where(_owner_clause(owner))
            .order_by(RentalRow.purchased_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_rental(r) for r in rows]

    async def latest_for_asset(self, owner: ActorId, asset_id: UUID) -> Rental | None:
        stmt = (
            select(RentalRow)
            .where(_owner_clause(owner), RentalRow.asset_id == asset_id)
            .order_by(RentalRow.purchased_at.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_rental(row) if row is not None else None

    async def latest_for_pack(self, owner: ActorId, pack_id: UUID) -> Rental | None:
        stmt = (
            select(RentalRow)
            .where(_owner_clause(owner), RentalRow.pack_id == pack_id)
            .order_by(RentalRow.purchased_at.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_rental(row) if row is not None else None

    async def active_packs(self, owner: ActorId, now: int) -> list[Rental]:
        stmt = (
            select(RentalRow)
            .where(
                _owner_clause(owner),
                RentalRow.pack_id.is_not(None),
                RentalRow.expires_at > now,
            )
            .order_by(RentalRow.purchased_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_rental(r) for r in rows]

    async def reassign_owner(self, source: ActorId, target: ActorId) -> int:
        user_id, anonymous_id = owner_columns(target)
        stmt = (
            update(RentalRow)
            .where(_owner_clause(source))
            .values(user_id=user_id, anonymous_id=anonymous_id)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def set_current_asset(
        self, rental_id: UUID, current_asset_id: UUID
    ) -> Rental | None:
        stmt = (
            update(RentalRow)
            .where(RentalRow.id == rental_id)
            .values(current_asset_id=current_asset_id)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(rental_id)


def _row_to_rental(row: RentalRow) -> Rental:
    return Rental(
        id=row.id,
        owner=actor_from_columns(row.user_id, row.anonymous_id),
        asset_id=row.asset_id,
        pack_id=row.pack_id,
        purchased_at=row.purchased_at,
        expires_at=row.expires_at,
        transaction_id=row.transaction_id,
        amount=row.amount,
        currency=row.currency,
        payment_method=row.payment_method,
        current_asset_id=row.current_asset_id,
    )
