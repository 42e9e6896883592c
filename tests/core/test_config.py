from __future__ import annotations

import pytest

from app.core.config import AppEnv, Settings, load_settings

_ENV_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "ANONYMOUS_ID_SECRET",
    "ANONYMOUS_ID_TTL_DAYS",
    "RENTAL_DURATION_HOURS",
    "GRACE_PERIOD_HOURS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---- defaults and normalization ----


def test_load_settings_defaults() -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.rental_duration_hours == 24
    assert settings.grace_period_hours == 2
    assert settings.anonymous_id_ttl_days == 90


def test_load_settings_prod_with_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", " PROD ")
    monkeypatch.setenv("LOG_LEVEL", "Error")
    monkeypatch.setenv("ANONYMOUS_ID_SECRET", "s3cret")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "error"
    assert settings.anonymous_id_secret == "s3cret"


def test_prod_requires_anonymous_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    with pytest.raises(ValueError, match="ANONYMOUS_ID_SECRET"):
        load_settings()


def test_log_json_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_JSON", "true")
    assert load_settings().log_json is True
    monkeypatch.setenv("LOG_JSON", "0")
    assert load_settings().log_json is False


# ---- invalid values ----


@pytest.mark.parametrize("raw", ["staging", ""])
def test_load_settings_rejects_invalid_app_env(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("APP_ENV", raw)
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be debug|info|warning|error"):
        load_settings()


@pytest.mark.parametrize("raw", ["0", "-3", "two"])
def test_load_settings_rejects_bad_rental_duration(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("RENTAL_DURATION_HOURS", raw)
    with pytest.raises(ValueError, match="RENTAL_DURATION_HOURS"):
        load_settings()


# ---- rental windows ----


def test_load_settings_reads_rental_windows(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENTAL_DURATION_HOURS", "48")
    monkeypatch.setenv("GRACE_PERIOD_HOURS", "6")
    monkeypatch.setenv("ANONYMOUS_ID_TTL_DAYS", "30")
    settings = load_settings()
    assert settings.rental_duration_seconds == 48 * 3600
    assert settings.grace_period_seconds == 6 * 3600
    assert settings.anonymous_id_ttl_seconds == 30 * 86400


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )


@pytest.mark.parametrize("env", ["dev", "test", "prod"])
def test_settings_env_flags(env: AppEnv) -> None:
    s = _make_settings(env)
    assert (s.is_dev, s.is_test, s.is_prod) == (env == "dev", env == "test", env == "prod")


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
