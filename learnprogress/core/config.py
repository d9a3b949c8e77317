from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, get_args

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getchoice(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = _getenv(name, default).lower()
    if raw not in choices:
        raise ValueError(f"{name} must be {'|'.join(choices)} (got {raw!r})")
    return raw


def _getbool(name: str, default: bool = False) -> bool:
    return _getenv(name, "true" if default else "false").lower() in ("1", "true", "yes")


def _getint(name: str, default: int, *, minimum: int = 1) -> int:
    raw = _getenv(name, str(default))
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
    # None selects the in-process implementation
    database_url: str | None
    redis_url: str | None

    # Cached progress views
    cache_ttl_seconds: int = 300
    cache_sweep_interval_seconds: int = 600

    # Stats and achievements
    weekly_stats_days: int = 7
    achievement_points: int = 100
    active_learner_days: int = 7

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    return Settings(
        app_env=_getchoice("APP_ENV", "dev", get_args(AppEnv)),  # type: ignore[arg-type]
        log_level=_getchoice("LOG_LEVEL", "info", get_args(LogLevel)),  # type: ignore[arg-type]
        log_json=_getbool("LOG_JSON"),
        port=_getint("PORT", 8000),
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        cache_ttl_seconds=_getint("CACHE_TTL_SECONDS", 300),
        cache_sweep_interval_seconds=_getint("CACHE_SWEEP_INTERVAL_SECONDS", 600),
        weekly_stats_days=_getint("WEEKLY_STATS_DAYS", 7),
        achievement_points=_getint("ACHIEVEMENT_POINTS", 100, minimum=0),
        active_learner_days=_getint("ACTIVE_LEARNER_DAYS", 7),
    )


# Module-level singleton, read once at import
SETTINGS = load_settings()
