"""Read-only view of the catalog.

The catalog is owned by another system; this service only asks whether
assets and packs exist, which assets a pack contains, and how long an
asset runs. InMemoryCatalog backs dev and tests.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID


class Catalog(Protocol):
    async def asset_exists(self, asset_id: UUID) -> bool: ...
    async def pack_exists(self, pack_id: UUID) -> bool: ...
    async def pack_members(self, pack_id: UUID) -> list[UUID]: ...
    async def runtime_seconds(self, asset_id: UUID) -> int | None: ...


class InMemoryCatalog:
    def __init__(self) -> None:
        self._runtimes: dict[UUID, int | None] = {}
        self._packs: dict[UUID, list[UUID]] = {}

    def add_asset(self, asset_id: UUID, runtime_seconds: int | None = None) -> None:
        self._runtimes[asset_id] = runtime_seconds

    def add_pack(self, pack_id: UUID, members: list[UUID]) -> None:
        for member in members:
            if member not in self._runtimes:
                raise ValueError(f"pack member is not a known asset: {member}")
        self._packs[pack_id] = list(members)

    def clear(self) -> None:
        self._runtimes.clear()
        self._packs.clear()

    async def asset_exists(self, asset_id: UUID) -> bool:
        return asset_id in self._runtimes

    async def pack_exists(self, pack_id: UUID) -> bool:
        return pack_id in self._packs

    async def pack_members(self, pack_id: UUID) -> list[UUID]:
        return list(self._packs.get(pack_id, []))

    async def runtime_seconds(self, asset_id: UUID) -> int | None:
        return self._runtimes.get(asset_id)
