"""Mint signed anonymous ids for guests.

The client stores the token and sends it back as X-Anonymous-Id. The
raw UUID inside is never accepted on its own.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import get_clock
from app.core.clock import Clock
from app.services import identity_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["identity"])


class AnonymousIdOut(BaseModel):
    anonymous_id: str  # signed token, opaque to the client
    id: UUID
    issued_at: int
    expires_at: int


@router.post(
    "/anonymous-id", response_model=AnonymousIdOut, status_code=status.HTTP_201_CREATED
)
def mint_anonymous_id(clock: Annotated[Clock, Depends(get_clock)]) -> AnonymousIdOut:
    minted = identity_service.mint_anonymous_token(clock())
    logger.debug("Minted anonymous id=%s", minted.anon_id)
    return AnonymousIdOut(
        anonymous_id=minted.token,
        id=minted.anon_id,
        issued_at=minted.issued_at,
        expires_at=minted.expires_at,
    )
