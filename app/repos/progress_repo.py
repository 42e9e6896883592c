from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.actor import ActorId
from app.models.progress import WatchProgress


class ProgressRepo(Protocol):
    async def get(
        self, owner: ActorId, asset_id: UUID, *, for_update: bool = False
    ) -> WatchProgress | None: ...
    async def put(self, progress: WatchProgress) -> None: ...
    async def delete(self, owner: ActorId, asset_id: UUID) -> bool: ...
    async def list_by_owner(self, owner: ActorId) -> list[WatchProgress]: ...
    async def change_owner(self, progress: WatchProgress, target: ActorId) -> WatchProgress: ...


class InMemoryProgressRepo:
    """Keyed by (owner, asset_id); put() is an upsert."""

    def __init__(self) -> None:
        self._rows: dict[tuple[ActorId, UUID], WatchProgress] = {}

    async def get(
        self, owner: ActorId, asset_id: UUID, *, for_update: bool = False
    ) -> WatchProgress | None:
        # for_update is a no-op here: nothing else runs between get and put
        return self._rows.get((owner, asset_id))

    async def put(self, progress: WatchProgress) -> None:
        self._rows[(progress.owner, progress.asset_id)] = progress

    async def delete(self, owner: ActorId, asset_id: UUID) -> bool:
        return self._rows.pop((owner, asset_id), None) is not None

    async def list_by_owner(self, owner: ActorId) -> list[WatchProgress]:
        rows = [p for (o, _), p in self._rows.items() if o == owner]
        return sorted(rows, key=lambda p: p.last_watched_at, reverse=True)

    async def change_owner(self, progress: WatchProgress, target: ActorId) -> WatchProgress:
        key = (target, progress.asset_id)
        if key in self._rows:
            raise ValueError(f"{target.key} already has progress for {progress.asset_id}")
        self._rows.pop((progress.owner, progress.asset_id), None)
        moved = replace(progress, owner=target)
        self._rows[key] = moved
        return moved

    def snapshot(self) -> dict[tuple[ActorId, UUID], WatchProgress]:
        return dict(self._rows)

    def restore(self, state: dict[tuple[ActorId, UUID], WatchProgress]) -> None:
        self._rows = dict(state)
