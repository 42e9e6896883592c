"""Client-side playback tracker.

One SessionTracker per mounted player. It owns a single mutable
WatchSession, turns player callbacks into watch-time accounting and
analytics events, and hands full-state ProgressSnapshots to `flush`.

Only short forward steps count as watched time: a jump of two seconds
or more (or any backwards move) is a seek and adds nothing.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Callable
from uuid import UUID

from app.client.session_store import SessionStore
from app.models.progress import COMPLETION_THRESHOLD
from app.models.session import (
    END_DEBOUNCE_SECONDS,
    HEARTBEAT_INTERVAL_SECONDS,
    SAVE_EVERY_WATCH_SECONDS,
    SEEK_THRESHOLD_SECONDS,
    AnalyticsEvent,
    DeviceType,
    EventType,
    ProgressSnapshot,
    WatchSession,
    new_session_id,
)

logger = logging.getLogger(__name__)

FlushFn = Callable[[ProgressSnapshot], None]
EmitFn = Callable[[AnalyticsEvent], None]


class PlaybackState(enum.Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    ENDED = "ended"


class SessionTracker:
    def __init__(
        self,
        store: SessionStore,
        *,
        viewer_id: str,
        asset_id: UUID,
        asset_title: str,
        duration: float,
        source: str = "direct",
        device_type: DeviceType = "desktop",
        flush: FlushFn | None = None,
        emit: EmitFn | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._flush = flush
        self._emit = emit or store.log_event
        self._clock = clock
        self.state = PlaybackState.IDLE
        self._last_reported = 0.0

        now = clock()
        existing = store.find_resumable(asset_id, viewer_id, now)
        if existing is not None:
            self.session = existing
            self.resumed = True
            self.session.last_active_at = now
            if duration > 0:
                self.session.duration = duration
            store.save(self.session)
            logger.debug("Resumed session %s", self.session.id)
        else:
            # Not saved until the first play.
            self.session = WatchSession(
                id=new_session_id(now),
                viewer_id=viewer_id,
                asset_id=asset_id,
                asset_title=asset_title,
                started_at=now,
                last_active_at=now,
                duration=max(duration, 0.0),
                device_type=device_type,
                source=source,
            )
            self.resumed = False
            logger.debug("Prepared session %s", self.session.id)

        self._saved_bucket = int(self.session.total_watch_time // SAVE_EVERY_WATCH_SECONDS)

    # --- helpers ---

    def _percent(self, current_time: float) -> float:
        d = self.session.duration
        return current_time / d * 100 if d > 0 else 0.0

    def _event(self, type_: EventType, **data: float) -> None:
        self._emit(
            AnalyticsEvent(
                type=type_,
                session_id=self.session.id,
                asset_id=self.session.asset_id,
                asset_title=self.session.asset_title,
                timestamp=self._clock(),
                data=data,
            )
        )

    def snapshot(self) -> ProgressSnapshot:
        s = self.session
        furthest = max(s.position, s.max_progress / 100 * s.duration)
        if s.duration > 0:
            furthest = min(furthest, s.duration)
        return ProgressSnapshot(
            session_id=s.id,
            asset_id=s.asset_id,
            progress_seconds=furthest,
            duration_seconds=s.duration,
            completed=s.completed,
            total_watch_time=s.total_watch_time,
        )

    def _save(self, *, flush: bool) -> None:
        self._store.save(self.session)
        if flush and self._flush is not None and self.session.duration > 0:
            self._flush(self.snapshot())

    # --- player callbacks ---

    def set_duration(self, duration: float) -> None:
        if duration > 0:
            self.session.duration = duration

    def track_play(self, current_time: float) -> None:
        self.state = PlaybackState.PLAYING
        self._last_reported = current_time
        self.session.position = current_time
        self.session.play_count += 1
        self.session.last_active_at = self._clock()
        self._save(flush=False)
        self._event(
            "movie_start",
            currentTime=current_time,
            duration=self.session.duration,
            progress=self._percent(current_time),
        )

    def track_time_update(self, current_time: float) -> None:
        if self.state is not PlaybackState.PLAYING:
            return

        delta = current_time - self._last_reported
        if 0 < delta < SEEK_THRESHOLD_SECONDS:
            self.session.total_watch_time += delta
        self._last_reported = current_time
        self.session.position = current_time

        progress = self._percent(current_time)
        if progress > self.session.max_progress:
            self.session.max_progress = min(progress, 100.0)
        if progress >= COMPLETION_THRESHOLD * 100:
            self.session.completed = True
            self.session.max_progress = 100.0
        self.session.last_active_at = self._clock()

        bucket = int(self.session.total_watch_time // SAVE_EVERY_WATCH_SECONDS)
        if bucket > self._saved_bucket:
            self._saved_bucket = bucket
            self._save(flush=True)

    def track_pause(self, current_time: float) -> None:
        self.state = PlaybackState.PAUSED
        self.session.position = current_time
        self.session.last_active_at = self._clock()
        self._save(flush=True)
        self._event(
            "movie_pause",
            currentTime=current_time,
            duration=self.session.duration,
            progress=self._percent(current_time),
            watchTime=self.session.total_watch_time,
        )

    def track_complete(self) -> None:
        now = self._clock()
        self.state = PlaybackState.COMPLETED
        self.session.completed = True
        self.session.max_progress = 100.0
        self.session.ended_at = now
        self.session.last_active_at = now
        self._save(flush=True)
        self._event(
            "movie_complete",
            duration=self.session.duration,
            watchTime=self.session.total_watch_time,
            progress=100.0,
        )

    def track_end(self) -> None:
        now = self._clock()
        # Players fire a spurious end right after a seek; ignore it.
        if (
            self.state is PlaybackState.PLAYING
            and now - self.session.last_active_at < END_DEBOUNCE_SECONDS
        ):
            return
        if self.state is PlaybackState.ENDED:
            return

        self.state = PlaybackState.ENDED
        self.session.ended_at = now
        self.session.last_active_at = now
        self._save(flush=True)
        self._event(
            "movie_end",
            watchTime=self.session.total_watch_time,
            progress=self.session.max_progress,
        )

    def heartbeat(self) -> None:
        if self.state is not PlaybackState.PLAYING:
            return
        self._event(
            "movie_progress",
            watchTime=self.session.total_watch_time,
            progress=self.session.max_progress,
        )

    def close(self) -> None:
        """Player unmounted. Persist without ending so it can be resumed."""
        if self.session.total_watch_time <= 0:
            return
        self.session.last_active_at = self._clock()
        self._save(flush=True)


class HeartbeatTimer:
    """Calls tracker.heartbeat() every `interval` seconds on the running loop.

    Independent of the save cadence; heartbeat() itself is a no-op unless
    the tracker is playing.
    """

    def __init__(
        self, tracker: SessionTracker, interval: float = HEARTBEAT_INTERVAL_SECONDS
    ) -> None:
        self._tracker = tracker
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._tracker.heartbeat()

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
