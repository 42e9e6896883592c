"""Client-local playback records.

These never hit the server as-is. A WatchSession accumulates what one
device/tab saw; the tracker summarizes it into ProgressSnapshot writes.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import UUID

SESSION_RESUME_WINDOW_SECONDS = 30 * 60
SEEK_THRESHOLD_SECONDS = 2.0
SAVE_EVERY_WATCH_SECONDS = 5
HEARTBEAT_INTERVAL_SECONDS = 30.0
END_DEBOUNCE_SECONDS = 2.0

DeviceType = Literal["mobile", "tablet", "desktop"]
EventType = Literal[
    "movie_start", "movie_progress", "movie_pause", "movie_complete", "movie_end"
]


def new_session_id(now: float | None = None) -> str:
    stamp = int((time.time() if now is None else now) * 1000)
    return f"{stamp}-{secrets.token_hex(4)}"


def new_viewer_id(now: float | None = None) -> str:
    stamp = int((time.time() if now is None else now) * 1000)
    return f"viewer-{stamp}-{secrets.token_hex(4)}"


def device_type_for_width(width: int) -> DeviceType:
    if width < 768:
        return "mobile"
    if width < 1024:
        return "tablet"
    return "desktop"


@dataclass(slots=True)
class WatchSession:
    id: str
    viewer_id: str
    asset_id: UUID
    asset_title: str
    started_at: float
    last_active_at: float
    duration: float
    device_type: DeviceType = "desktop"
    source: str = "direct"
    total_watch_time: float = 0.0
    max_progress: float = 0.0  # percent, 0-100
    completed: bool = False
    play_count: int = 0
    position: float = 0.0  # last reported playhead, seconds
    ended_at: float | None = None

    def is_resumable(self, now: float) -> bool:
        return (
            not self.completed
            and self.ended_at is None
            and now - self.last_active_at < SESSION_RESUME_WINDOW_SECONDS
        )


@dataclass(frozen=True, slots=True)
class AnalyticsEvent:
    type: EventType
    session_id: str
    asset_id: UUID
    asset_title: str
    timestamp: float
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Full accumulated state for one flush.

    Always totals, never deltas: a late-arriving older snapshot loses to
    the server's max-wins merge, so delivery order does not matter.
    """

    session_id: str
    asset_id: UUID
    progress_seconds: float
    duration_seconds: float
    completed: bool
    total_watch_time: float


@dataclass(frozen=True, slots=True)
class AssetAnalytics:
    asset_id: UUID
    asset_title: str
    total_views: int
    unique_viewers: int
    total_watch_time: float
    completions: int
    average_watch_time: float
    completion_rate: float
    average_progress: float
    last_watched: float


@dataclass(frozen=True, slots=True)
class AnalyticsSummary:
    total_watch_time: float
    total_sessions: int
    unique_viewers: int
    total_completions: int
    average_session_length: float
    assets: list[AssetAnalytics]
    top_by_watch_time: list[AssetAnalytics]
    top_by_completion_rate: list[AssetAnalytics]
    top_by_views: list[AssetAnalytics]
    recent_sessions: list[WatchSession]
