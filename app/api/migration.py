"""POST /v1/migrate: move a guest's rentals and progress to the signed-in user.

Needs both identities in one request: the user from the bearer session
and the guest from a signed anonymous token (body or X-Anonymous-Id).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel

from app.api.dependencies import (
    anonymous_from_token,
    get_clock,
    get_uow,
    require_user_actor,
)
from app.api.errors import http_error
from app.api.progress import invalidate_continue_watching
from app.core.clock import Clock
from app.core.errors import MigrationPartialFailure
from app.models.actor import UserActor
from app.repos.unit_of_work import UnitOfWork
from app.services import migration_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["migration"])


class MigrateIn(BaseModel):
    anonymous_token: str | None = None


class MigrateOut(BaseModel):
    migrated_rentals: int
    migrated_progress: int


@router.post("/migrate", response_model=MigrateOut)
async def migrate(
    user: Annotated[UserActor, Depends(require_user_actor)],
    uow: Annotated[UnitOfWork, Depends(get_uow)],
    clock: Annotated[Clock, Depends(get_clock)],
    body: MigrateIn | None = None,
    x_anonymous_id: Annotated[str | None, Header()] = None,
) -> MigrateOut:
    token = (body.anonymous_token if body is not None else None) or x_anonymous_id
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="anonymous_token required",
        )

    anon = anonymous_from_token(token, clock)
    if anon is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="anonymous token is invalid or expired",
        )

    try:
        result = await migration_service.migrate(uow, anon, user, clock=clock)
    except MigrationPartialFailure as e:
        logger.exception("Migration failed %s -> %s", anon.key, user.key)
        raise http_error(e) from e

    await uow.commit()
    await invalidate_continue_watching(user, anon)
    return MigrateOut(
        migrated_rentals=result.migrated_rentals,
        migrated_progress=result.migrated_progress,
    )
