"""create rentals and watch_progress

Revision ID: 3b7e9c1d2a40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e9c1d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_EXACTLY_ONE_OWNER = (
    "(user_id IS NOT NULL AND anonymous_id IS NULL) OR "
    "(user_id IS NULL AND anonymous_id IS NOT NULL)"
)


def upgrade() -> None:
    op.create_table(
        "rentals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("anonymous_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("pack_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("current_asset_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("purchased_at", sa.BigInteger(), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=False),
        sa.Column("transaction_id", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("payment_method", sa.String(length=64), nullable=False),
        sa.CheckConstraint(_EXACTLY_ONE_OWNER, name="ck_rentals_one_owner"),
        sa.CheckConstraint(
            "(asset_id IS NOT NULL AND pack_id IS NULL) OR "
            "(asset_id IS NULL AND pack_id IS NOT NULL)",
            name="ck_rentals_one_target",
        ),
        sa.CheckConstraint("expires_at > purchased_at", name="ck_rentals_expiry_order"),
        sa.UniqueConstraint("transaction_id", name="uq_rentals_transaction_id"),
    )
    op.create_index("ix_rentals_user_id", "rentals", ["user_id"])
    op.create_index("ix_rentals_anonymous_id", "rentals", ["anonymous_id"])

    op.create_table(
        "watch_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("anonymous_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("progress_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_watched_at", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.CheckConstraint(_EXACTLY_ONE_OWNER, name="ck_watch_progress_one_owner"),
        sa.CheckConstraint(
            "progress_seconds >= 0 AND progress_seconds <= duration_seconds",
            name="ck_watch_progress_in_range",
        ),
        sa.UniqueConstraint("user_id", "asset_id", name="uq_watch_progress_user_asset"),
        sa.UniqueConstraint(
            "anonymous_id", "asset_id", name="uq_watch_progress_anonymous_asset"
        ),
    )


def downgrade() -> None:
    op.drop_table("watch_progress")
    op.drop_index("ix_rentals_anonymous_id", table_name="rentals")
    op.drop_index("ix_rentals_user_id", table_name="rentals")
    op.drop_table("rentals")
