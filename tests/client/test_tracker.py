"""SessionTracker: watch-time accounting, resume, save cadence, end debounce.

Player callbacks are driven by hand against a fake wall clock; flushed
snapshots are collected in a list instead of going over HTTP.
"""

from __future__ import annotations

import asyncio
import uuid

import pytest

from app.client.session_store import InMemorySessionStore
from app.client.tracker import HeartbeatTimer, PlaybackState, SessionTracker
from app.models.session import ProgressSnapshot

ASSET = uuid.uuid4()
VIEWER = "viewer-1700000000000-abcd1234"


class WallClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def wall() -> WallClock:
    return WallClock()


@pytest.fixture
def flushed() -> list[ProgressSnapshot]:
    return []


def _tracker(store, wall, flushed, duration: float = 100.0, viewer: str = VIEWER) -> SessionTracker:
    return SessionTracker(
        store,
        viewer_id=viewer,
        asset_id=ASSET,
        asset_title="Night of the Test",
        duration=duration,
        flush=flushed.append,
        clock=wall,
    )


def _event_types(store: InMemorySessionStore) -> list[str]:
    return [e.type for e in store.events()]


def test_seeks_do_not_count_as_watch_time(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed, duration=1000)
    t.track_play(0)
    for position in (1, 2, 3, 100, 101):
        t.track_time_update(position)
    assert t.session.total_watch_time == pytest.approx(4.0)
    assert t.session.position == 101


def test_backwards_seek_adds_nothing(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed, duration=1000)
    t.track_play(500)
    t.track_time_update(501)
    t.track_time_update(10)
    t.track_time_update(11)
    assert t.session.total_watch_time == pytest.approx(2.0)


def test_updates_while_paused_are_ignored(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.track_play(0)
    t.track_pause(0)
    t.track_time_update(1)
    assert t.session.total_watch_time == 0


def test_play_saves_session_and_emits_start(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    assert store.get(t.session.id) is None
    t.track_play(0)
    assert store.get(t.session.id) is not None
    assert t.session.play_count == 1
    assert _event_types(store) == ["movie_start"]
    assert flushed == []


def test_flushes_every_five_seconds_of_watching(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed, duration=1000)
    t.track_play(0)
    for second in range(1, 13):
        wall.now += 1
        t.track_time_update(second)
    assert [s.progress_seconds for s in flushed] == [5, 10]
    assert flushed[0].total_watch_time == pytest.approx(5.0)
    assert flushed[0].asset_id == ASSET
    assert flushed[0].duration_seconds == 1000


def test_pause_flushes_full_state(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.track_play(0)
    t.track_time_update(1)
    t.track_pause(1)
    assert len(flushed) == 1
    assert flushed[0].progress_seconds == 1
    assert "movie_pause" in _event_types(store)


def test_snapshot_reports_furthest_point_after_rewind(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.track_play(0)
    for second in range(1, 41):
        t.track_time_update(second)
    t.track_time_update(5)  # rewind
    snap = t.snapshot()
    assert snap.progress_seconds == pytest.approx(40.0)


def test_crossing_ninety_percent_completes(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed, duration=10)
    t.track_play(8)
    t.track_time_update(8.5)
    assert t.session.completed is False
    t.track_time_update(9.5)
    assert t.session.completed is True
    assert t.snapshot().completed is True
    assert t.session.max_progress == 100.0


def test_completed_session_reports_full_progress_in_events(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed, duration=3600)
    t.track_play(3239)
    t.track_time_update(3240)
    assert t.session.completed is True
    assert t.session.max_progress == 100.0
    t.track_time_update(3241)
    assert t.session.max_progress == 100.0
    t.track_pause(3241)
    t.track_end()
    end = [e for e in store.events() if e.type == "movie_end"][-1]
    assert end.data["progress"] == 100.0


def test_track_complete(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.track_play(0)
    t.track_complete()
    assert t.state is PlaybackState.COMPLETED
    assert t.session.max_progress == 100.0
    assert t.session.ended_at == wall.now
    assert flushed[-1].completed is True
    assert flushed[-1].progress_seconds == 100
    assert _event_types(store)[-1] == "movie_complete"


# ---- end debounce ----


def test_end_right_after_activity_is_ignored(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.track_play(0)
    t.track_time_update(1)
    wall.now += 1
    t.track_end()
    assert t.state is PlaybackState.PLAYING
    assert "movie_end" not in _event_types(store)


def test_end_fires_once(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.track_play(0)
    wall.now += 3
    t.track_end()
    t.track_end()
    assert t.state is PlaybackState.ENDED
    assert _event_types(store).count("movie_end") == 1
    assert t.session.ended_at == wall.now


def test_end_while_paused_is_not_debounced(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.track_play(0)
    t.track_pause(0)
    t.track_end()
    assert t.state is PlaybackState.ENDED


# ---- resume ----


def test_resumes_open_session_within_window(store, wall, flushed) -> None:
    first = _tracker(store, wall, flushed)
    first.track_play(0)
    first.track_time_update(1)
    first.close()

    wall.now += 29 * 60
    second = _tracker(store, wall, flushed)
    assert second.resumed is True
    assert second.session.id == first.session.id
    assert second.session.total_watch_time == pytest.approx(1.0)


def test_new_session_after_window(store, wall, flushed) -> None:
    first = _tracker(store, wall, flushed)
    first.track_play(0)
    wall.now += 30 * 60
    second = _tracker(store, wall, flushed)
    assert second.resumed is False
    assert second.session.id != first.session.id


def test_ended_session_is_not_resumed(store, wall, flushed) -> None:
    first = _tracker(store, wall, flushed)
    first.track_play(0)
    wall.now += 3
    first.track_end()
    second = _tracker(store, wall, flushed)
    assert second.resumed is False


def test_other_viewer_does_not_resume(store, wall, flushed) -> None:
    _tracker(store, wall, flushed).track_play(0)
    other = _tracker(store, wall, flushed, viewer="viewer-other")
    assert other.resumed is False


def test_close_without_watching_saves_nothing(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.close()
    assert store.all() == []
    assert flushed == []


def test_no_flush_without_duration(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed, duration=0)
    t.track_play(0)
    t.track_pause(0)
    assert flushed == []
    t.set_duration(50)
    t.track_pause(0)
    assert len(flushed) == 1


# ---- heartbeat ----


def test_heartbeat_only_while_playing(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.heartbeat()
    t.track_play(0)
    t.heartbeat()
    t.track_pause(0)
    t.heartbeat()
    assert _event_types(store).count("movie_progress") == 1


def test_heartbeat_timer_ticks_until_stopped(store, wall, flushed) -> None:
    t = _tracker(store, wall, flushed)
    t.track_play(0)

    async def run() -> None:
        timer = HeartbeatTimer(t, interval=0.01)
        timer.start()
        assert timer.running
        await asyncio.sleep(0.05)
        await timer.stop()
        assert not timer.running

    asyncio.run(run())
    ticks = _event_types(store).count("movie_progress")
    assert ticks >= 1
