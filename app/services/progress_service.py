"""Watch-progress store with a max-wins merge.

Concurrent sessions (two tabs, phone and TV) write the same
(owner, asset) row in any order. Accepting only writes that move
forward or carry completion makes the stored row the furthest point any
session reached, regardless of arrival order.
"""

from __future__ import annotations

import logging
import math
from uuid import UUID

from app.core.clock import Clock, utc_now
from app.core.errors import AssetNotFound, ProgressOutOfRange
from app.core.metrics import PROGRESS_WRITES
from app.models.actor import ActorId
from app.models.progress import (
    PackProgress,
    WatchProgress,
    is_complete,
    merge_write,
)
from app.repos.catalog_repo import Catalog
from app.repos.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def _validate(progress_seconds: float, duration_seconds: float) -> None:
    if not math.isfinite(progress_seconds) or progress_seconds < 0:
        raise ProgressOutOfRange(f"progress_seconds out of range: {progress_seconds}")
    if not math.isfinite(duration_seconds) or duration_seconds <= 0:
        raise ProgressOutOfRange(f"duration_seconds out of range: {duration_seconds}")


async def upsert(
    uow: UnitOfWork,
    catalog: Catalog,
    actor: ActorId,
    asset_id: UUID,
    progress_seconds: float,
    duration_seconds: float,
    completed: bool | None = None,
    *,
    clock: Clock = utc_now,
) -> WatchProgress:
    """Merge one playhead report into the stored row and return the result.

    A write that moves backwards without completion is rejected and the
    stored row comes back unchanged.
    """
    _validate(progress_seconds, duration_seconds)
    if not await catalog.asset_exists(asset_id):
        raise AssetNotFound(asset_id)

    duration = max(int(duration_seconds), 1)
    progress = min(int(progress_seconds), duration)
    done = completed is True or is_complete(progress, duration)
    now = clock()

    stored = await uow.progress.get(actor, asset_id, for_update=True)
    incoming = WatchProgress(
        owner=actor,
        asset_id=asset_id,
        progress_seconds=progress,
        duration_seconds=duration,
        completed=done,
        last_watched_at=now,
        created_at=stored.created_at if stored is not None else now,
        updated_at=now,
    )

    row = incoming
    if stored is not None:
        merged = merge_write(stored, incoming)
        if merged is None:
            PROGRESS_WRITES.labels(outcome="rejected").inc()
            logger.debug(
                "Ignored stale progress owner=%s asset=%s incoming=%d stored=%d",
                actor.key,
                asset_id,
                progress,
                stored.progress_seconds,
            )
            return stored
        row = merged

    await uow.progress.put(row)
    PROGRESS_WRITES.labels(outcome="created" if stored is None else "advanced").inc()
    if row.completed and (stored is None or not stored.completed):
        logger.info("Asset completed owner=%s asset=%s", actor.key, asset_id)
    return row


async def get(uow: UnitOfWork, actor: ActorId, asset_id: UUID) -> WatchProgress | None:
    return await uow.progress.get(actor, asset_id)


async def list_all(uow: UnitOfWork, actor: ActorId) -> list[WatchProgress]:
    return await uow.progress.list_by_owner(actor)


async def get_continue_watching(uow: UnitOfWork, actor: ActorId) -> list[WatchProgress]:
    """Started, unfinished assets, most recently watched first."""
    rows = await uow.progress.list_by_owner(actor)
    return [p for p in rows if not p.completed and p.progress_seconds > 0]


async def delete(uow: UnitOfWork, actor: ActorId, asset_id: UUID) -> bool:
    removed = await uow.progress.delete(actor, asset_id)
    if removed:
        logger.info("Deleted progress owner=%s asset=%s", actor.key, asset_id)
    return removed


async def pack_progress(
    uow: UnitOfWork, catalog: Catalog, actor: ActorId, pack_id: UUID
) -> PackProgress | None:
    """Summed member progress against summed member runtimes.

    None when no member has a known runtime.
    """
    total_runtime = 0
    total_watched = 0
    for asset_id in await catalog.pack_members(pack_id):
        runtime = await catalog.runtime_seconds(asset_id)
        if not runtime:
            continue
        total_runtime += runtime
        row = await uow.progress.get(actor, asset_id)
        if row is not None:
            total_watched += min(row.progress_seconds, runtime)

    if total_runtime == 0:
        return None
    return PackProgress(
        progress_seconds=total_watched,
        duration_seconds=total_runtime,
        completed=is_complete(total_watched, total_runtime),
    )
