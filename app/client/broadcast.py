"""Cross-tab auth sync as in-process pub/sub.

A message posted on one BroadcastChannel reaches every *other* open
channel with the same name on the same hub, never the sender. Each tab
holds one ClientAuthState; the tab where the user signs in runs the
migration, the others only update local state.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal
from uuid import UUID

import httpx

logger = logging.getLogger(__name__)

AUTH_CHANNEL_NAME = "auth"


@dataclass(frozen=True, slots=True)
class AuthMessage:
    type: Literal["login", "logout"]
    user_id: UUID | None = None
    session_token: str | None = None


MessageHandler = Callable[[AuthMessage], None]


class AuthBroadcastHub:
    def __init__(self) -> None:
        self._channels: dict[str, list[BroadcastChannel]] = {}

    def open(self, name: str, on_message: MessageHandler) -> BroadcastChannel:
        channel = BroadcastChannel(self, name, on_message)
        self._channels.setdefault(name, []).append(channel)
        return channel

    def _deliver(self, sender: BroadcastChannel, message: AuthMessage) -> int:
        delivered = 0
        for channel in list(self._channels.get(sender.name, [])):
            if channel is not sender:
                channel.on_message(message)
                delivered += 1
        return delivered

    def _remove(self, channel: BroadcastChannel) -> None:
        peers = self._channels.get(channel.name, [])
        if channel in peers:
            peers.remove(channel)
        if not peers:
            self._channels.pop(channel.name, None)


class BroadcastChannel:
    def __init__(self, hub: AuthBroadcastHub, name: str, on_message: MessageHandler) -> None:
        self._hub = hub
        self.name = name
        self.on_message = on_message
        self.closed = False

    def post(self, message: AuthMessage) -> int:
        """Deliver to every other open peer; returns how many received it."""
        if self.closed:
            raise RuntimeError(f"channel {self.name!r} is closed")
        return self._hub._deliver(self, message)

    def close(self) -> None:
        if not self.closed:
            self._hub._remove(self)
            self.closed = True


class ClientAuthState:
    """Per-tab identity: a session when signed in, always an anonymous token.

    `migrate` is called with the anonymous token after a local login;
    a failed migration is logged and does not undo the login.
    """

    def __init__(
        self,
        hub: AuthBroadcastHub,
        *,
        mint_anonymous_token: Callable[[], str],
        migrate: Callable[[str], Awaitable[Any]] | None = None,
    ) -> None:
        self._mint = mint_anonymous_token
        self._migrate = migrate
        self.user_id: UUID | None = None
        self.session_token: str | None = None
        self.anonymous_token: str = mint_anonymous_token()
        self._channel = hub.open(AUTH_CHANNEL_NAME, self._on_message)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def headers(self) -> dict[str, str]:
        headers = {"X-Anonymous-Id": self.anonymous_token}
        if self.session_token:
            headers["Authorization"] = f"Bearer {self.session_token}"
        return headers

    async def login(self, user_id: UUID, session_token: str) -> Any:
        self.user_id = user_id
        self.session_token = session_token
        self._channel.post(
            AuthMessage(type="login", user_id=user_id, session_token=session_token)
        )
        if self._migrate is None:
            return None
        try:
            result = await self._migrate(self.anonymous_token)
        except httpx.HTTPError as e:
            logger.warning("Migration after login failed user=%s: %s", user_id, e)
            return None
        logger.info("Migrated anonymous data for user=%s", user_id)
        return result

    def logout(self) -> None:
        self._clear()
        self._channel.post(AuthMessage(type="logout"))

    def _clear(self) -> None:
        self.user_id = None
        self.session_token = None
        # Fresh guest identity so the next guest cannot read the old one's rows.
        self.anonymous_token = self._mint()

    def _on_message(self, message: AuthMessage) -> None:
        if message.type == "login":
            self.user_id = message.user_id
            self.session_token = message.session_token
        elif message.type == "logout":
            self._clear()

    def close(self) -> None:
        self._channel.close()
