from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import UUID

from app.models.actor import ActorId

# Share of the runtime after which a viewing counts as finished.
COMPLETION_THRESHOLD = 0.9


@dataclass(frozen=True, slots=True)
class WatchProgress:
    """Furthest confirmed playhead for one (owner, asset) pair.

    progress_seconds never decreases under merge_write, and completed
    never flips back to False.
    """

    owner: ActorId
    asset_id: UUID
    progress_seconds: int
    duration_seconds: int
    completed: bool
    last_watched_at: int
    created_at: int
    updated_at: int

    @property
    def percent(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.progress_seconds / self.duration_seconds * 100


@dataclass(frozen=True, slots=True)
class PackProgress:
    """Aggregate progress across every asset in a pack."""

    progress_seconds: int
    duration_seconds: int
    completed: bool

    @property
    def percent(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.progress_seconds / self.duration_seconds * 100


def is_complete(progress_seconds: float, duration_seconds: float) -> bool:
    return duration_seconds > 0 and progress_seconds >= COMPLETION_THRESHOLD * duration_seconds


def merge_write(stored: WatchProgress | None, incoming: WatchProgress) -> WatchProgress | None:
    """Apply one client write on top of the stored row.

    Returns the row to persist, or None when the write is rejected (it
    moves backwards and carries no completion).
    """
    if stored is None:
        return incoming
    if incoming.progress_seconds < stored.progress_seconds and not incoming.completed:
        return None
    progress = max(incoming.progress_seconds, stored.progress_seconds)
    return replace(
        stored,
        progress_seconds=progress,
        # never shrink below the kept playhead
        duration_seconds=max(incoming.duration_seconds, progress),
        completed=incoming.completed or stored.completed,
        last_watched_at=incoming.last_watched_at,
        updated_at=incoming.updated_at,
    )


def merge_owners(target: WatchProgress, source: WatchProgress, now: int) -> WatchProgress:
    """Fold an anonymous row into the user's row for the same asset."""
    return replace(
        target,
        progress_seconds=max(target.progress_seconds, source.progress_seconds),
        duration_seconds=max(target.duration_seconds, source.duration_seconds),
        completed=target.completed or source.completed,
        last_watched_at=max(target.last_watched_at, source.last_watched_at),
        created_at=min(target.created_at, source.created_at),
        updated_at=now,
    )
