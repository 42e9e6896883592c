"""Verification of account-service session tokens (ES256 JWTs).

This service never issues sessions in production. The verification key
comes from SESSION_PUBLIC_KEY_PEM; without it a throwaway P-256 key pair
is generated at import, and create_access_token signs with its private
half so tests and the demo script can mint sessions locally.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from app.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = "account-service"
AUDIENCE = "rental-service"
ACCESS_TOKEN_TTL_MIN = 15
_REQUIRED_CLAIMS = ["sub", "exp", "iat"]

_signing_key = ec.generate_private_key(ec.SECP256R1())
_verifying_key = (
    serialization.load_pem_public_key(SETTINGS.session_public_key_pem.encode())
    if SETTINGS.session_public_key_pem
    else _signing_key.public_key()
)


def create_access_token(*, sub: uuid.UUID | str, ttl_minutes: int = ACCESS_TOKEN_TTL_MIN) -> str:
    issued = datetime.now(UTC)
    claims = {
        "iss": ISSUER,
        "aud": AUDIENCE,
        "sub": str(sub),
        "iat": issued,
        "exp": issued + timedelta(minutes=ttl_minutes),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, _signing_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Return the claims of a valid session token.

    Only ES256 is accepted. Raises jwt.ExpiredSignatureError for an
    expired token and jwt.InvalidTokenError for anything else wrong.
    """
    return jwt.decode(
        token,
        _verifying_key,
        algorithms=[ALGORITHM],
        audience=AUDIENCE,
        issuer=ISSUER,
        options={"require": _REQUIRED_CLAIMS},
    )
