"""Watch-progress endpoints.

PUT is what the client flusher calls with full accumulated state; the
max-wins merge lives in progress_service. GET /continue is read-through
cached per owner and invalidated by every write, delete and migration.
Invalidation runs only after the write is committed; dropping the entry
earlier would let a concurrent GET re-cache the pre-commit rows.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_catalog, get_clock, get_uow, require_actor
from app.api.errors import http_error
from app.core.clock import Clock
from app.core.errors import RentalServiceError
from app.core.metrics import CACHE_OPERATIONS
from app.models.actor import ActorId
from app.models.progress import WatchProgress
from app.repos.catalog_repo import Catalog
from app.repos.unit_of_work import UnitOfWork
from app.services import progress_service
from app.services.cache import cache_service

router = APIRouter(prefix="/v1/watch-progress", tags=["watch-progress"])

# Explicit invalidation covers the normal case; the TTL bounds staleness
# if an invalidation is ever missed.
_CONTINUE_CACHE_TTL = 120


def continue_cache_key(actor: ActorId) -> str:
    return f"continue:{actor.key}"


async def invalidate_continue_watching(*actors: ActorId) -> None:
    await cache_service.delete(*(continue_cache_key(actor) for actor in actors))


# --- Pydantic schemas ---


class ProgressIn(BaseModel):
    progress_seconds: float
    duration_seconds: float
    completed: bool | None = None


class ProgressOut(BaseModel):
    asset_id: UUID
    progress_seconds: int
    duration_seconds: int
    percent: float
    completed: bool
    last_watched_at: int
    created_at: int
    updated_at: int


class SingleProgressOut(BaseModel):
    progress: ProgressOut | None


class ProgressListOut(BaseModel):
    progress: list[ProgressOut]
    total: int


class DeletedOut(BaseModel):
    deleted: bool


def _progress_out(p: WatchProgress) -> ProgressOut:
    return ProgressOut(
        asset_id=p.asset_id,
        progress_seconds=p.progress_seconds,
        duration_seconds=p.duration_seconds,
        percent=round(p.percent, 2),
        completed=p.completed,
        last_watched_at=p.last_watched_at,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


Actor = Annotated[ActorId, Depends(require_actor)]
Uow = Annotated[UnitOfWork, Depends(get_uow)]


# --- Endpoints ---


@router.get("", response_model=ProgressListOut)
async def list_progress(actor: Actor, uow: Uow) -> ProgressListOut:
    rows = await progress_service.list_all(uow, actor)
    return ProgressListOut(progress=[_progress_out(p) for p in rows], total=len(rows))


@router.get("/continue", response_model=ProgressListOut)
async def continue_watching(actor: Actor, uow: Uow) -> ProgressListOut:
    cache_key = continue_cache_key(actor)

    cached = await cache_service.get(cache_key)
    if cached is not None:
        CACHE_OPERATIONS.labels(operation="hit").inc()
        return ProgressListOut.model_validate_json(cached)
    CACHE_OPERATIONS.labels(operation="miss").inc()

    rows = await progress_service.get_continue_watching(uow, actor)
    out = ProgressListOut(progress=[_progress_out(p) for p in rows], total=len(rows))
    await cache_service.set(cache_key, out.model_dump_json(), _CONTINUE_CACHE_TTL)
    return out


@router.get("/{asset_id}", response_model=SingleProgressOut)
async def get_progress(asset_id: UUID, actor: Actor, uow: Uow) -> SingleProgressOut:
    row = await progress_service.get(uow, actor, asset_id)
    return SingleProgressOut(progress=_progress_out(row) if row is not None else None)


@router.put("/{asset_id}", response_model=SingleProgressOut)
async def put_progress(
    asset_id: UUID,
    body: ProgressIn,
    actor: Actor,
    uow: Uow,
    catalog: Annotated[Catalog, Depends(get_catalog)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> SingleProgressOut:
    try:
        row = await progress_service.upsert(
            uow,
            catalog,
            actor,
            asset_id,
            body.progress_seconds,
            body.duration_seconds,
            body.completed,
            clock=clock,
        )
    except RentalServiceError as e:
        raise http_error(e) from e
    await uow.commit()
    await invalidate_continue_watching(actor)
    return SingleProgressOut(progress=_progress_out(row))


@router.delete("/{asset_id}", response_model=DeletedOut)
async def delete_progress(asset_id: UUID, actor: Actor, uow: Uow) -> DeletedOut:
    deleted = await progress_service.delete(uow, actor, asset_id)
    if deleted:
        await uow.commit()
        await invalidate_continue_watching(actor)
    return DeletedOut(deleted=deleted)
