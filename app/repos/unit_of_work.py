"""Groups the rental and progress repos behind one transaction boundary.

Migration writes to both stores and must land all-or-nothing, so the
services talk to a UnitOfWork rather than to bare repos.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_rental_repo import PgRentalRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.repos.rental_repo import InMemoryRentalRepo, RentalRepo


class UnitOfWork(Protocol):
    rentals: RentalRepo
    progress: ProgressRepo

    def transaction(self) -> AbstractAsyncContextManager[None]: ...

    async def commit(self) -> None: ...


class InMemoryUnitOfWork:
    """Snapshot both stores on entry; put them back if the block raises."""

    def __init__(self) -> None:
        self.rentals = InMemoryRentalRepo()
        self.progress = InMemoryProgressRepo()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        rentals_state = self.rentals.snapshot()
        progress_state = self.progress.snapshot()
        try:
            yield
        except BaseException:
            self.rentals.restore(rentals_state)
            self.progress.restore(progress_state)
            raise

    async def commit(self) -> None:
        """Writes are visible as soon as they are made."""

    def reset(self) -> None:
        self.rentals = InMemoryRentalRepo()
        self.progress = InMemoryProgressRepo()


class PgUnitOfWork:
    """Both repos share one AsyncSession; transaction() is a SAVEPOINT.

    The outer commit/rollback stays with get_async_session, so a block
    that fails is undone without discarding the rest of the request.
    Endpoints that must act after the data is durable (cache
    invalidation) call commit() themselves first.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.rentals = PgRentalRepo(session)
        self.progress = PgProgressRepo(session)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._session.begin_nested():
            yield

    async def commit(self) -> None:
        """Make the request's writes durable now, ahead of get_async_session."""
        await self._session.commit()
