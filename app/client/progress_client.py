"""HTTP client for the watch-progress API, plus a fire-and-forget flusher.

The tracker must never wait on the network, so BackgroundFlusher turns
each snapshot into a task on the running loop. A failed PUT is logged and
dropped: the next flush carries the full accumulated state anyway.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any
from uuid import UUID

import httpx

from app.models.session import ProgressSnapshot

logger = logging.getLogger(__name__)

HeadersFn = Callable[[], dict[str, str]]


class ProgressApiClient:
    """Thin async wrapper over /v1/watch-progress and /v1/migrate.

    `headers` is called per request so a login or logout in between is
    picked up without rebuilding the client.
    """

    def __init__(
        self,
        base_url: str,
        headers: HeadersFn,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._headers = headers
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        response.raise_for_status()
        return response

    async def put_progress(self, snapshot: ProgressSnapshot) -> dict:
        response = await self._request(
            "PUT",
            f"/v1/watch-progress/{snapshot.asset_id}",
            json={
                "progress_seconds": snapshot.progress_seconds,
                "duration_seconds": snapshot.duration_seconds,
                "completed": snapshot.completed,
            },
        )
        return response.json()

    async def get_progress(self, asset_id: UUID) -> dict | None:
        response = await self._request("GET", f"/v1/watch-progress/{asset_id}")
        return response.json()["progress"]

    async def list_progress(self) -> list[dict]:
        response = await self._request("GET", "/v1/watch-progress")
        return response.json()["progress"]

    async def continue_watching(self) -> list[dict]:
        response = await self._request("GET", "/v1/watch-progress/continue")
        return response.json()["progress"]

    async def delete_progress(self, asset_id: UUID) -> bool:
        response = await self._request("DELETE", f"/v1/watch-progress/{asset_id}")
        return response.json()["deleted"]

    async def migrate(self, anonymous_token: str) -> dict:
        response = await self._request(
            "POST", "/v1/migrate", json={"anonymous_token": anonymous_token}
        )
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


class BackgroundFlusher:
    """Callable usable as SessionTracker(flush=...)."""

    def __init__(self, client: ProgressApiClient) -> None:
        self._client = client
        self._pending: set[asyncio.Task[None]] = set()

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        task = asyncio.get_running_loop().create_task(self._send(snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, snapshot: ProgressSnapshot) -> None:
        try:
            await self._client.put_progress(snapshot)
        except httpx.HTTPError as e:
            logger.warning(
                "Progress flush failed session=%s asset=%s: %s",
                snapshot.session_id,
                snapshot.asset_id,
                e,
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight flush. Used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
