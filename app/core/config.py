"""Environment-driven settings, read once at import into SETTINGS."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_APP_ENVS = ("dev", "test", "prod")
_LOG_LEVELS = ("debug", "info", "warning", "error")
_TRUTHY = ("1", "true", "yes")
_DEV_ANONYMOUS_SECRET = "dev-anonymous-secret-change-in-production"


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = _env(name, default).lower()
    if value not in allowed:
        raise ValueError(f"{name} must be {'|'.join(allowed)} (got {value!r})")
    return value


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    anonymous_id_secret: str = _DEV_ANONYMOUS_SECRET
    anonymous_id_ttl_days: int = 90
    rental_duration_hours: int = 24
    grace_period_hours: int = 2
    session_public_key_pem: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def rental_duration_seconds(self) -> int:
        return self.rental_duration_hours * 3600

    @property
    def grace_period_seconds(self) -> int:
        return self.grace_period_hours * 3600

    @property
    def anonymous_id_ttl_seconds(self) -> int:
        return self.anonymous_id_ttl_days * 86400


def load_settings() -> Settings:
    """Build Settings from the environment.

    Raises ValueError naming the offending variable. APP_ENV=prod also
    requires a real ANONYMOUS_ID_SECRET: with the shared dev secret
    anyone could mint a guest token for someone else's anonymous id.
    """
    app_env = _env_choice("APP_ENV", "dev", _APP_ENVS)

    anonymous_id_secret = _env("ANONYMOUS_ID_SECRET") or _DEV_ANONYMOUS_SECRET
    if app_env == "prod" and anonymous_id_secret == _DEV_ANONYMOUS_SECRET:
        raise ValueError("ANONYMOUS_ID_SECRET must be set when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level=_env_choice("LOG_LEVEL", "info", _LOG_LEVELS),
        log_json=_env("LOG_JSON", "false").lower() in _TRUTHY,
        port=_env_int("PORT", 8000),
        database_url=_env("DATABASE_URL") or None,
        redis_url=_env("REDIS_URL") or None,
        anonymous_id_secret=anonymous_id_secret,
        anonymous_id_ttl_days=_env_int("ANONYMOUS_ID_TTL_DAYS", 90),
        rental_duration_hours=_env_int("RENTAL_DURATION_HOURS", 24),
        grace_period_hours=_env_int("GRACE_PERIOD_HOURS", 2, minimum=0),
        session_public_key_pem=_env("SESSION_PUBLIC_KEY_PEM") or None,
    )


SETTINGS = load_settings()
