"""Rental endpoints: access checks, status, purchases, pack position.

Identity comes from the Authorization bearer session or the
X-Anonymous-Id signed token; a request with neither gets 401.
Payment is confirmed upstream; the body only carries its receipt.
"""

from __future__ import annotations

from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_catalog, get_clock, get_uow, require_actor
from app.api.errors import http_error
from app.core.clock import Clock
from app.core.errors import RentalServiceError
from app.models.actor import ActorId
from app.models.rental import Rental
from app.repos.catalog_repo import Catalog
from app.repos.unit_of_work import UnitOfWork
from app.services import entitlement_service, progress_service
from app.services.entitlement_service import RentalStatus

router = APIRouter(prefix="/v1/rentals", tags=["rentals"])


# --- Pydantic schemas ---


class RentalOut(BaseModel):
    id: UUID
    asset_id: UUID | None
    pack_id: UUID | None
    current_asset_id: UUID | None
    purchased_at: int
    expires_at: int
    transaction_id: str
    amount: int
    currency: str
    payment_method: str
    remaining_seconds: int


class RentalStatusOut(BaseModel):
    rental: RentalOut | None
    expired: bool | None = None
    expired_at: int | None = None
    in_grace: bool = False


class PackProgressOut(BaseModel):
    progress_seconds: int
    duration_seconds: int
    percent: float
    completed: bool


class PackStatusOut(RentalStatusOut):
    progress: PackProgressOut | None = None


class AccessOut(BaseModel):
    has_access: bool
    access_type: Literal["direct", "pack"] | None
    rental: RentalOut | None


class RentalListOut(BaseModel):
    rentals: list[RentalOut]
    total: int


class CreateRentalIn(BaseModel):
    transaction_id: str = Field(min_length=1, max_length=255)
    amount: int = Field(ge=0)  # minor units
    payment_method: str = Field(min_length=1, max_length=64)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class PackPositionIn(BaseModel):
    current_asset_id: UUID


def _rental_out(rental: Rental, now: int) -> RentalOut:
    return RentalOut(
        id=rental.id,
        asset_id=rental.asset_id,
        pack_id=rental.pack_id,
        current_asset_id=rental.current_asset_id,
        purchased_at=rental.purchased_at,
        expires_at=rental.expires_at,
        transaction_id=rental.transaction_id,
        amount=rental.amount,
        currency=rental.currency,
        payment_method=rental.payment_method,
        remaining_seconds=rental.remaining_seconds(now),
    )


def _status_fields(result: RentalStatus, now: int, in_grace: bool) -> dict:
    return {
        "rental": _rental_out(result.rental, now) if result.rental else None,
        "expired": result.expired,
        "expired_at": result.expired_at,
        "in_grace": bool(result.expired) and in_grace,
    }


Actor = Annotated[ActorId, Depends(require_actor)]
Uow = Annotated[UnitOfWork, Depends(get_uow)]
CatalogDep = Annotated[Catalog, Depends(get_catalog)]
ClockDep = Annotated[Clock, Depends(get_clock)]


# --- Endpoints ---


@router.get("", response_model=RentalListOut)
async def list_rentals(
    actor: Actor,
    uow: Uow,
    clock: ClockDep,
    include_recent: Annotated[bool, Query()] = False,
    include_all: Annotated[bool, Query()] = False,
) -> RentalListOut:
    rentals = await entitlement_service.list_rentals(
        uow, actor, include_recent=include_recent, include_all=include_all, clock=clock
    )
    now = clock()
    return RentalListOut(rentals=[_rental_out(r, now) for r in rentals], total=len(rentals))


@router.get("/access/{asset_id}", response_model=AccessOut)
async def check_access(
    asset_id: UUID, actor: Actor, uow: Uow, catalog: CatalogDep, clock: ClockDep
) -> AccessOut:
    result = await entitlement_service.check_access(uow, catalog, actor, asset_id, clock=clock)
    return AccessOut(
        has_access=result.has_access,
        access_type=result.access_type,
        rental=_rental_out(result.rental, clock()) if result.rental else None,
    )


@router.get("/packs/{pack_id}", response_model=PackStatusOut)
async def get_pack_status(
    pack_id: UUID, actor: Actor, uow: Uow, catalog: CatalogDep, clock: ClockDep
) -> PackStatusOut:
    result = await entitlement_service.get_pack_status(uow, actor, pack_id, clock=clock)
    in_grace = await entitlement_service.is_pack_within_grace(uow, actor, pack_id, clock=clock)
    progress = await progress_service.pack_progress(uow, catalog, actor, pack_id)
    return PackStatusOut(
        **_status_fields(result, clock(), in_grace),
        progress=(
            PackProgressOut(
                progress_seconds=progress.progress_seconds,
                duration_seconds=progress.duration_seconds,
                percent=round(progress.percent, 2),
                completed=progress.completed,
            )
            if progress is not None
            else None
        ),
    )


@router.post(
    "/packs/{pack_id}", response_model=RentalOut, status_code=status.HTTP_201_CREATED
)
async def create_pack_rental(
    pack_id: UUID,
    body: CreateRentalIn,
    actor: Actor,
    uow: Uow,
    catalog: CatalogDep,
    clock: ClockDep,
) -> RentalOut:
    try:
        rental = await entitlement_service.create_pack_rental(
            uow,
            catalog,
            actor,
            pack_id,
            transaction_id=body.transaction_id,
            amount=body.amount,
            payment_method=body.payment_method,
            currency=body.currency,
            clock=clock,
        )
    except RentalServiceError as e:
        raise http_error(e) from e
    return _rental_out(rental, clock())


@router.patch("/{rental_id}/position", response_model=RentalOut)
async def update_pack_position(
    rental_id: UUID,
    body: PackPositionIn,
    actor: Actor,
    uow: Uow,
    catalog: CatalogDep,
    clock: ClockDep,
) -> RentalOut:
    try:
        rental = await entitlement_service.update_pack_position(
            uow, catalog, actor, rental_id, body.current_asset_id, clock=clock
        )
    except RentalServiceError as e:
        raise http_error(e) from e
    return _rental_out(rental, clock())


@router.get("/{asset_id}", response_model=RentalStatusOut)
async def get_rental_status(
    asset_id: UUID, actor: Actor, uow: Uow, catalog: CatalogDep, clock: ClockDep
) -> RentalStatusOut:
    result = await entitlement_service.get_status(uow, catalog, actor, asset_id, clock=clock)
    in_grace = await entitlement_service.is_within_grace(uow, actor, asset_id, clock=clock)
    return RentalStatusOut(**_status_fields(result, clock(), in_grace))


@router.post("/{asset_id}", response_model=RentalOut, status_code=status.HTTP_201_CREATED)
async def create_rental(
    asset_id: UUID,
    body: CreateRentalIn,
    actor: Actor,
    uow: Uow,
    catalog: CatalogDep,
    clock: ClockDep,
) -> RentalOut:
    try:
        rental = await entitlement_service.create_rental(
            uow,
            catalog,
            actor,
            asset_id,
            transaction_id=body.transaction_id,
            amount=body.amount,
            payment_method=body.payment_method,
            currency=body.currency,
            clock=clock,
        )
    except RentalServiceError as e:
        raise http_error(e) from e
    return _rental_out(rental, clock())
