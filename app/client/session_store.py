"""Device-local record of watch sessions and analytics events.

Bounded: the newest 1000 sessions and 5000 events are kept, oldest
dropped first. Sessions are stored as copies so the tracker's live
object and the stored snapshot never alias.
"""

from __future__ import annotations

import copy
from collections import OrderedDict, deque
from typing import Protocol
from uuid import UUID

from app.models.session import (
    AnalyticsEvent,
    AnalyticsSummary,
    AssetAnalytics,
    WatchSession,
)

MAX_SESSIONS = 1000
MAX_EVENTS = 5000
_TOP_N = 5
_RECENT_N = 10


class SessionStore(Protocol):
    def save(self, session: WatchSession) -> None: ...
    def get(self, session_id: str) -> WatchSession | None: ...
    def all(self) -> list[WatchSession]: ...
    def find_resumable(
        self, asset_id: UUID, viewer_id: str, now: float
    ) -> WatchSession | None: ...
    def log_event(self, event: AnalyticsEvent) -> None: ...
    def events(self) -> list[AnalyticsEvent]: ...


class InMemorySessionStore:
    def __init__(self, max_sessions: int = MAX_SESSIONS, max_events: int = MAX_EVENTS) -> None:
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, WatchSession] = OrderedDict()
        self._events: deque[AnalyticsEvent] = deque(maxlen=max_events)

    def save(self, session: WatchSession) -> None:
        # Updating keeps the original position; trimming drops by first save.
        self._sessions[session.id] = copy.copy(session)
        while len(self._sessions) > self._max_sessions:
            self._sessions.popitem(last=False)

    def get(self, session_id: str) -> WatchSession | None:
        stored = self._sessions.get(session_id)
        return copy.copy(stored) if stored is not None else None

    def all(self) -> list[WatchSession]:
        return [copy.copy(s) for s in self._sessions.values()]

    def find_resumable(
        self, asset_id: UUID, viewer_id: str, now: float
    ) -> WatchSession | None:
        """Most recently active open session for this viewer and asset."""
        candidates = [
            s
            for s in self._sessions.values()
            if s.asset_id == asset_id and s.viewer_id == viewer_id and s.is_resumable(now)
        ]
        if not candidates:
            return None
        return copy.copy(max(candidates, key=lambda s: s.last_active_at))

    def log_event(self, event: AnalyticsEvent) -> None:
        self._events.append(event)

    def events(self) -> list[AnalyticsEvent]:
        return list(self._events)

    def clear(self) -> None:
        self._sessions.clear()
        self._events.clear()

    # --- aggregates ---

    def asset_analytics(self, asset_id: UUID) -> AssetAnalytics | None:
        sessions = [s for s in self._sessions.values() if s.asset_id == asset_id]
        if not sessions:
            return None
        return _aggregate(asset_id, sessions)

    def all_asset_analytics(self) -> list[AssetAnalytics]:
        by_asset: dict[UUID, list[WatchSession]] = {}
        for s in self._sessions.values():
            by_asset.setdefault(s.asset_id, []).append(s)
        return [_aggregate(asset_id, group) for asset_id, group in by_asset.items()]

    def summary(self) -> AnalyticsSummary:
        sessions = list(self._sessions.values())
        assets = self.all_asset_analytics()
        total_watch = sum(s.total_watch_time for s in sessions)
        return AnalyticsSummary(
            total_watch_time=total_watch,
            total_sessions=len(sessions),
            unique_viewers=len({s.viewer_id for s in sessions}),
            total_completions=sum(1 for s in sessions if s.completed),
            average_session_length=total_watch / len(sessions) if sessions else 0.0,
            assets=assets,
            top_by_watch_time=sorted(
                assets, key=lambda a: a.total_watch_time, reverse=True
            )[:_TOP_N],
            top_by_completion_rate=sorted(
                assets, key=lambda a: a.completion_rate, reverse=True
            )[:_TOP_N],
            top_by_views=sorted(assets, key=lambda a: a.total_views, reverse=True)[:_TOP_N],
            recent_sessions=[
                copy.copy(s)
                for s in sorted(sessions, key=lambda s: s.started_at, reverse=True)[
                    :_RECENT_N
                ]
            ],
        )


def _aggregate(asset_id: UUID, sessions: list[WatchSession]) -> AssetAnalytics:
    views = len(sessions)
    total_watch = sum(s.total_watch_time for s in sessions)
    completions = sum(1 for s in sessions if s.completed)
    return AssetAnalytics(
        asset_id=asset_id,
        asset_title=sessions[0].asset_title,
        total_views=views,
        unique_viewers=len({s.viewer_id for s in sessions}),
        total_watch_time=total_watch,
        completions=completions,
        average_watch_time=total_watch / views,
        completion_rate=completions / views * 100,
        average_progress=sum(s.max_progress for s in sessions) / views,
        last_watched=max(s.last_active_at or s.started_at for s in sessions),
    )
