"""PostgreSQL tables for rentals and watch progress.

Rows never leave the Pg repos; they are converted to the dataclasses in
app/models/ on the way out.

Ownership is two nullable columns (user_id, anonymous_id) with a CHECK
that exactly one is set, so a row can never belong to both identities
or to neither.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base

TRANSACTION_ID_CONSTRAINT = "uq_rentals_transaction_id"

_EXACTLY_ONE_OWNER = (
    "(user_id IS NOT NULL AND anonymous_id IS NULL) OR "
    "(user_id IS NULL AND anonymous_id IS NOT NULL)"
)


class RentalRow(Base):
    __tablename__ = "rentals"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    anonymous_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    asset_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    pack_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    current_asset_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )  # resume pointer inside a pack
    purchased_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # minor units
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    payment_method: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        CheckConstraint(_EXACTLY_ONE_OWNER, name="ck_rentals_one_owner"),
        CheckConstraint(
            "(asset_id IS NOT NULL AND pack_id IS NULL) OR "
            "(asset_id IS NULL AND pack_id IS NOT NULL)",
            name="ck_rentals_one_target",
        ),
        CheckConstraint("expires_at > purchased_at", name="ck_rentals_expiry_order"),
        UniqueConstraint("transaction_id", name=TRANSACTION_ID_CONSTRAINT),
        Index("ix_rentals_user_id", "user_id"),
        Index("ix_rentals_anonymous_id", "anonymous_id"),
    )


class WatchProgressRow(Base):
    __tablename__ = "watch_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    anonymous_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    progress_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_watched_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint(_EXACTLY_ONE_OWNER, name="ck_watch_progress_one_owner"),
        CheckConstraint(
            "progress_seconds >= 0 AND progress_seconds <= duration_seconds",
            name="ck_watch_progress_in_range",
        ),
        UniqueConstraint("user_id", "asset_id", name="uq_watch_progress_user_asset"),
        UniqueConstraint(
            "anonymous_id", "asset_id", name="uq_watch_progress_anonymous_asset"
        ),
    )
