from __future__ import annotations

import pytest

from learnprogress.core.config import AppEnv, Settings, load_settings

_INT_VARS = (
    "CACHE_TTL_SECONDS",
    "CACHE_SWEEP_INTERVAL_SECONDS",
    "WEEKLY_STATS_DAYS",
    "ACHIEVEMENT_POINTS",
    "ACTIVE_LEARNER_DAYS",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ("APP_ENV", "LOG_LEVEL", "LOG_JSON", *_INT_VARS):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ---- valid values ----


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.cache_ttl_seconds == 300
    assert settings.cache_sweep_interval_seconds == 600
    assert settings.weekly_stats_days == 7
    assert settings.achievement_points == 100
    assert settings.active_learner_days == 7


def test_env_vars_are_normalized(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("APP_ENV", "  PROD ")
    clean_env.setenv("LOG_LEVEL", "Warning")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "warning"


@pytest.mark.parametrize("raw", ["1", "true", "YES"])
def test_log_json_truthy_values(clean_env: pytest.MonkeyPatch, raw: str) -> None:
    clean_env.setenv("LOG_JSON", raw)
    assert load_settings().log_json is True


def test_integer_settings_from_env(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("CACHE_TTL_SECONDS", "60")
    clean_env.setenv("WEEKLY_STATS_DAYS", " 14 ")
    settings = load_settings()
    assert settings.cache_ttl_seconds == 60
    assert settings.weekly_stats_days == 14


def test_zero_achievement_points_allowed(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ACHIEVEMENT_POINTS", "0")
    assert load_settings().achievement_points == 0


# ---- invalid values ----


def test_rejects_invalid_app_env(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_rejects_invalid_log_level(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be"):
        load_settings()


@pytest.mark.parametrize("name", _INT_VARS)
def test_rejects_non_integer(clean_env: pytest.MonkeyPatch, name: str) -> None:
    clean_env.setenv(name, "soon")
    with pytest.raises(ValueError, match=f"{name} must be an integer"):
        load_settings()


@pytest.mark.parametrize(
    "name", ["CACHE_TTL_SECONDS", "WEEKLY_STATS_DAYS", "ACTIVE_LEARNER_DAYS"]
)
def test_rejects_values_below_one(clean_env: pytest.MonkeyPatch, name: str) -> None:
    clean_env.setenv(name, "0")
    with pytest.raises(ValueError, match=f"{name} must be >= 1"):
        load_settings()


def test_rejects_negative_achievement_points(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ACHIEVEMENT_POINTS", "-5")
    with pytest.raises(ValueError, match="ACHIEVEMENT_POINTS must be >= 0"):
        load_settings()


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
def test_env_flags_are_exclusive(env: AppEnv) -> None:
    s = _make_settings(env)
    assert (s.is_dev, s.is_test, s.is_prod) == (env == "dev", env == "test", env == "prod")


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.cache_ttl_seconds = 1  # type: ignore[misc]
