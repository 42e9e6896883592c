"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import WatchProgressRow
from app.models.actor import ActorId, actor_from_columns, owner_columns
from app.models.progress import WatchProgress


def _owner_clause(owner: ActorId):
    user_id, anonymous_id = owner_columns(owner)
    if user_id is not None:
        return WatchProgressRow.user_id == user_id
    return WatchProgressRow.anonymous_id == anonymous_id


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get_row(
        self, owner: ActorId, asset_id: UUID, *, for_update: bool = False
    ) -> WatchProgressRow | None:
        stmt = select(WatchProgressRow).where(
            _owner_clause(owner), WatchProgressRow.asset_id == asset_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get(
        self, owner: ActorId, asset_id: UUID, *, for_update: bool = False
    ) -> WatchProgress | None:
        row = await self._get_row(owner, asset_id, for_update=for_update)
        if row is None:
            return None
        return _row_to_progress(row)

    async def put(self, progress: WatchProgress) -> None:
        row = await self._get_row(progress.owner, progress.asset_id)
        if row is None:
            user_id, anonymous_id = owner_columns(progress.owner)
            row = WatchProgressRow(
                user_id=user_id,
                anonymous_id=anonymous_id,
                asset_id=progress.asset_id,
                created_at=progress.created_at,
            )
            self._session.add(row)
        row.progress_seconds = progress.progress_seconds
        row.duration_seconds = progress.duration_seconds
        row.completed = progress.completed
        row.last_watched_at = progress.last_watched_at
        row.updated_at = progress.updated_at
        await self._session.flush()

    async def delete(self, owner: ActorId, asset_id: UUID) -> bool:
        stmt = delete(WatchProgressRow).where(
            _owner_clause(owner), WatchProgressRow.asset_id == asset_id
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_by_owner(self, owner: ActorId) -> list[WatchProgress]:
        stmt = (
            select(WatchProgressRow)
            .where(_owner_clause(owner))
            .order_by(WatchProgressRow.last_watched_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(r) for r in rows]

    async def change_owner(self, progress: WatchProgress, target: ActorId) -> WatchProgress:
        user_id, anonymous_id = owner_columns(target)
        stmt = (
            update(WatchProgressRow)
            .where(
                _owner_clause(progress.owner),
                WatchProgressRow.asset_id == progress.asset_id,
            )
            .values(user_id=user_id, anonymous_id=anonymous_id)
        )
        await self._session.execute(stmt)
        moved = await self.get(target, progress.asset_id)
        if moved is None:
            raise RuntimeError(f"progress row vanished during re-own: {progress.asset_id}")
        return moved


def _row_to_progress(row: WatchProgressRow) -> WatchProgress:
    return WatchProgress(
        owner=actor_from_columns(row.user_id, row.anonymous_id),
        asset_id=row.asset_id,
        progress_seconds=row.progress_seconds,
        duration_seconds=row.duration_seconds,
        completed=row.completed,
        last_watched_at=row.last_watched_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
