"""Hand a guest's rentals and progress over to the account they signed into.

Runs inside one UnitOfWork transaction: either both stores are re-owned
or neither is. Repeating a finished migration finds nothing left under
the anonymous owner and returns zero counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.clock import Clock, utc_now
from app.core.errors import MigrationPartialFailure
from app.core.metrics import MIGRATIONS
from app.models.actor import AnonymousActor, UserActor
from app.models.progress import merge_owners
from app.repos.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MigrationResult:
    migrated_rentals: int
    migrated_progress: int


async def _move_progress(
    uow: UnitOfWork, source: AnonymousActor, target: UserActor, now: int
) -> int:
    moved = 0
    for row in await uow.progress.list_by_owner(source):
        existing = await uow.progress.get(target, row.asset_id, for_update=True)
        if existing is None:
            await uow.progress.change_owner(row, target)
        else:
            await uow.progress.put(merge_owners(existing, row, now))
            await uow.progress.delete(source, row.asset_id)
        moved += 1
    return moved


async def migrate(
    uow: UnitOfWork,
    source_anon: AnonymousActor,
    target_user: UserActor,
    *,
    clock: Clock = utc_now,
) -> MigrationResult:
    now = clock()
    try:
        async with uow.transaction():
            rentals = await uow.rentals.reassign_owner(source_anon, target_user)
            progress = await _move_progress(uow, source_anon, target_user, now)
    except Exception as e:
        MIGRATIONS.labels(result="failed").inc()
        raise MigrationPartialFailure(
            f"migration {source_anon.key} -> {target_user.key} rolled back"
        ) from e

    result = MigrationResult(migrated_rentals=rentals, migrated_progress=progress)
    if rentals or progress:
        MIGRATIONS.labels(result="migrated").inc()
        logger.info(
            "Migrated %s -> %s rentals=%d progress=%d",
            source_anon.key,
            target_user.key,
            rentals,
            progress,
        )
    else:
        MIGRATIONS.labels(result="noop").inc()
    return result
