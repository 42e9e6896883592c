"""Who is asking: a signed-in user, a guest with a signed token, or nobody.

Anonymous tokens are HS256 JWTs signed with ANONYMOUS_ID_SECRET, with
claims {"sub": <anonymous uuid>, "iat", "exp"}. Only a token that
verifies here can become an AnonymousActor.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from uuid import UUID

import jwt

from app.core.config import SETTINGS
from app.core.errors import AnonymousTokenExpired, InvalidSignature
from app.core.metrics import ANONYMOUS_TOKEN_VERIFICATIONS
from app.models.actor import ActorId, AnonymousActor, UserActor
from app.services import token_service

logger = logging.getLogger(__name__)

ANONYMOUS_ALGORITHM = "HS256"
_ANONYMOUS_REQUIRED_CLAIMS = ["sub", "iat", "exp"]


@dataclass(frozen=True, slots=True)
class Credentials:
    session_token: str | None = None
    anonymous_token: str | None = None


@dataclass(frozen=True, slots=True)
class AnonymousToken:
    token: str
    anon_id: UUID
    issued_at: int
    expires_at: int


def mint_anonymous_token(
    now: int,
    *,
    secret: str | None = None,
    ttl_seconds: int | None = None,
) -> AnonymousToken:
    secret = secret or SETTINGS.anonymous_id_secret
    ttl = ttl_seconds if ttl_seconds is not None else SETTINGS.anonymous_id_ttl_seconds
    anon_id = uuid.uuid4()
    claims = {"sub": str(anon_id), "iat": now, "exp": now + ttl}
    return AnonymousToken(
        token=jwt.encode(claims, secret, algorithm=ANONYMOUS_ALGORITHM),
        anon_id=anon_id,
        issued_at=now,
        expires_at=now + ttl,
    )


def verify_anonymous_token(token: str, now: int, *, secret: str | None = None) -> UUID:
    """Return the anonymous id inside a valid token.

    Raises InvalidSignature for malformed or forged tokens and
    AnonymousTokenExpired once `now` is past the token's exp. Expiry is
    judged against the caller's clock, so pyjwt's own wall-clock exp/iat
    checks are switched off.
    """
    secret = secret or SETTINGS.anonymous_id_secret
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ANONYMOUS_ALGORITHM],
            options={
                "require": _ANONYMOUS_REQUIRED_CLAIMS,
                "verify_exp": False,
                "verify_iat": False,
            },
        )
        anon_id = UUID(claims["sub"])
        expires_at = int(claims["exp"])
    except jwt.InvalidTokenError as e:
        raise InvalidSignature(f"anonymous token rejected: {e}") from e
    except (ValueError, TypeError) as e:
        raise InvalidSignature(f"undecodable anonymous token claims: {e}") from e

    if now > expires_at:
        raise AnonymousTokenExpired(f"anonymous token expired at {expires_at}")
    return anon_id


def anonymous_actor_from_token(token: str, now: int) -> AnonymousActor:
    return AnonymousActor(verify_anonymous_token(token, now))


def _user_from_session(token: str) -> UserActor | None:
    try:
        claims = token_service.decode_access_token(token)
        return UserActor(UUID(claims["sub"]))
    except jwt.ExpiredSignatureError:
        logger.warning("Expired session token ignored")
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid session token ignored: %s", e)
    except ValueError:
        logger.warning("Session token subject is not a UUID")
    return None


def _anonymous_from_token(token: str, now: int) -> AnonymousActor | None:
    try:
        actor = anonymous_actor_from_token(token, now)
    except AnonymousTokenExpired:
        ANONYMOUS_TOKEN_VERIFICATIONS.labels(result="expired").inc()
        logger.warning("Expired anonymous token ignored")
        return None
    except InvalidSignature as e:
        ANONYMOUS_TOKEN_VERIFICATIONS.labels(result="invalid").inc()
        logger.warning("Anonymous token rejected: %s", e)
        return None
    ANONYMOUS_TOKEN_VERIFICATIONS.labels(result="valid").inc()
    return actor


def resolve(credentials: Credentials, now: int) -> ActorId | None:
    """Pick the identity for a request. A valid session always wins.

    Failed verification degrades to the next option and never raises.
    """
    if credentials.session_token:
        user = _user_from_session(credentials.session_token)
        if user is not None:
            return user
    if credentials.anonymous_token:
        return _anonymous_from_token(credentials.anonymous_token, now)
    return None
