"""Domain error taxonomy.

Services raise these; the HTTP layer translates them to status codes in
one place (app/api/errors.py). Nothing below this module knows about HTTP.
"""

from __future__ import annotations

from uuid import UUID


class RentalServiceError(Exception):
    pass


class DuplicateRental(RentalServiceError):
    """An active rental already exists for this owner and asset/pack."""

    def __init__(self, owner_key: str, target: str) -> None:
        super().__init__(f"active rental already exists owner={owner_key} {target}")
        self.owner_key = owner_key
        self.target = target


class DuplicateTransaction(RentalServiceError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"transaction already recorded: {transaction_id}")
        self.transaction_id = transaction_id


class AssetNotFound(RentalServiceError):
    def __init__(self, asset_id: UUID) -> None:
        super().__init__(f"asset not found: {asset_id}")
        self.asset_id = asset_id


class PackNotFound(AssetNotFound):
    pass


class RentalNotFound(RentalServiceError):
    pass


class InvalidSignature(RentalServiceError):
    """Anonymous token failed verification. Callers degrade to 'no identity'."""


class AnonymousTokenExpired(InvalidSignature):
    pass


class MigrationPartialFailure(RentalServiceError):
    """Either half of a migration failed; the transaction was rolled back."""


class ProgressOutOfRange(RentalServiceError):
    pass
