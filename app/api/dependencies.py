from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.clock import Clock, utc_now
from app.core.errors import InvalidSignature
from app.db.engine import async_session_factory, get_async_session
from app.middleware.request_context import actor_var
from app.models.actor import ActorId, AnonymousActor, UserActor
from app.repos.catalog_repo import Catalog, InMemoryCatalog
from app.repos.unit_of_work import InMemoryUnitOfWork, PgUnitOfWork, UnitOfWork
from app.services import identity_service
from app.services.identity_service import Credentials

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Process-wide stores used when DATABASE_URL is unset (dev, tests).
in_memory_uow = InMemoryUnitOfWork()
catalog = InMemoryCatalog()


def get_clock() -> Clock:
    return utc_now


def get_catalog() -> Catalog:
    return catalog


async def get_uow() -> AsyncGenerator[UnitOfWork, None]:
    """One UnitOfWork per request; Postgres-backed when configured."""
    if async_session_factory is None:
        yield in_memory_uow
        return
    async for session in get_async_session():
        yield PgUnitOfWork(session)


async def resolve_actor(
    bearer: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    clock: Annotated[Clock, Depends(get_clock)],
    x_anonymous_id: Annotated[str | None, Header()] = None,
) -> ActorId | None:
    """Identity for this request, or None. Never raises on bad credentials."""
    credentials = Credentials(
        session_token=bearer.credentials if bearer is not None else None,
        anonymous_token=x_anonymous_id,
    )
    actor = identity_service.resolve(credentials, clock())
    if actor is not None:
        actor_var.set(actor.key)
    return actor


def require_actor(
    actor: Annotated[ActorId | None, Depends(resolve_actor)],
) -> ActorId:
    """401 unless the request carries a session or a valid anonymous token."""
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session or anonymous id required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


def require_user_actor(
    actor: Annotated[ActorId | None, Depends(resolve_actor)],
) -> UserActor:
    if not isinstance(actor, UserActor):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Signed-in session required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


def anonymous_from_token(token: str, clock: Clock) -> AnonymousActor | None:
    """Verify a token passed in a body rather than the header."""
    try:
        return identity_service.anonymous_actor_from_token(token, clock())
    except InvalidSignature as e:
        logger.warning("Rejected anonymous token in request body: %s", e)
        return None
