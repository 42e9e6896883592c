from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class UserActor:
    """An authenticated account. Durable across devices."""

    user_id: UUID

    @property
    def key(self) -> str:
        return f"User:{self.user_id}"


@dataclass(frozen=True, slots=True)
class AnonymousActor:
    """A guest identity taken from a verified anonymous token.

    Only identity_service should construct these from request input;
    anywhere else a raw UUID must not be promoted to an identity.
    """

    anon_id: UUID

    @property
    def key(self) -> str:
        return f"Anon:{self.anon_id}"


ActorId = UserActor | AnonymousActor


def parse_actor_key(key: str) -> ActorId:
    """Inverse of ActorId.key. Raises ValueError on anything else."""
    kind, sep, raw = key.partition(":")
    if not sep:
        raise ValueError(f"malformed actor key: {key!r}")
    if kind == "User":
        return UserActor(UUID(raw))
    if kind == "Anon":
        return AnonymousActor(UUID(raw))
    raise ValueError(f"unknown actor kind: {kind!r}")


def owner_columns(actor: ActorId) -> tuple[UUID | None, UUID | None]:
    """Split an actor into (user_id, anonymous_id); exactly one is set."""
    if isinstance(actor, UserActor):
        return actor.user_id, None
    return None, actor.anon_id


def actor_from_columns(user_id: UUID | None, anonymous_id: UUID | None) -> ActorId:
    if (user_id is None) == (anonymous_id is None):
        raise ValueError("exactly one of user_id / anonymous_id must be set")
    if user_id is not None:
        return UserActor(user_id)
    return AnonymousActor(anonymous_id)  # type: ignore[arg-type]
