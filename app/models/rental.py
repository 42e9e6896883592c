from __future__ import annotations

import enum
from dataclasses import dataclass
from uuid import UUID, uuid4

from app.models.actor import ActorId


class RentalState(enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"  # past expiry, inside the grace window
    LAPSED = "lapsed"


@dataclass(frozen=True, slots=True)
class Rental:
    """Purchased, time-boxed access to one asset or one pack.

    Direct rentals set asset_id, pack rentals set pack_id; never both.
    Status is never stored: it is derived from expires_at on every read
    (see state_at), so nothing has to run in the background to expire rows.
    """

    id: UUID
    owner: ActorId
    asset_id: UUID | None
    pack_id: UUID | None
    purchased_at: int
    expires_at: int
    transaction_id: str
    amount: int
    currency: str
    payment_method: str
    current_asset_id: UUID | None = None  # resume pointer inside a pack

    def __post_init__(self) -> None:
        if (self.asset_id is None) == (self.pack_id is None):
            raise ValueError("rental must target exactly one of asset_id / pack_id")
        if self.expires_at <= self.purchased_at:
            raise ValueError("expires_at must be after purchased_at")

    @staticmethod
    def new(
        *,
        owner: ActorId,
        purchased_at: int,
        duration_seconds: int,
        transaction_id: str,
        amount: int,
        payment_method: str,
        currency: str = "USD",
        asset_id: UUID | None = None,
        pack_id: UUID | None = None,
    ) -> Rental:
        return Rental(
            id=uuid4(),
            owner=owner,
            asset_id=asset_id,
            pack_id=pack_id,
            purchased_at=purchased_at,
            expires_at=purchased_at + duration_seconds,
            transaction_id=transaction_id,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
        )

    @property
    def is_pack(self) -> bool:
        return self.pack_id is not None

    @property
    def target(self) -> str:
        if self.pack_id is not None:
            return f"pack={self.pack_id}"
        return f"asset={self.asset_id}"

    def is_active(self, now: int) -> bool:
        return now < self.expires_at

    def state_at(self, now: int, grace_seconds: int) -> RentalState:
        if now < self.expires_at:
            return RentalState.ACTIVE
        if now < self.expires_at + grace_seconds:
            return RentalState.EXPIRED
        return RentalState.LAPSED

    def remaining_seconds(self, now: int) -> int:
        return max(self.expires_at - now, 0)

    def remaining_grace_seconds(self, now: int, grace_seconds: int) -> int:
        if now < self.expires_at:
            return 0
        return max(self.expires_at + grace_seconds - now, 0)
