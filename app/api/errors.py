"""Domain errors -> HTTPException, in one place.

Routes catch RentalServiceError and `raise http_error(e) from e`.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from app.core.errors import (
    AssetNotFound,
    DuplicateRental,
    DuplicateTransaction,
    MigrationPartialFailure,
    ProgressOutOfRange,
    RentalNotFound,
    RentalServiceError,
)

_STATUS_BY_ERROR: tuple[tuple[type[RentalServiceError], int], ...] = (
    (DuplicateRental, status.HTTP_409_CONFLICT),
    (DuplicateTransaction, status.HTTP_409_CONFLICT),
    (AssetNotFound, status.HTTP_404_NOT_FOUND),
    (RentalNotFound, status.HTTP_404_NOT_FOUND),
    (ProgressOutOfRange, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (MigrationPartialFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def http_error(exc: RentalServiceError) -> HTTPException:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if code >= 500:
        # Keep internals out of the response body; the caller logs the cause.
        return HTTPException(status_code=code, detail="Internal error")
    return HTTPException(status_code=code, detail=str(exc))
