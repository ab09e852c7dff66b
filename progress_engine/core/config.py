from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
CompletionTimestampPolicy = Literal["latest", "first"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it's easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    notification_url: str | None = None
    notification_timeout_seconds: float = 5.0
    completion_timestamp_policy: CompletionTimestampPolicy = "latest"
    quiz_timer_grace_seconds: int = 30

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
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")
    timeout_raw = _getenv("NOTIFICATION_TIMEOUT_SECONDS", "5")
    policy_raw = _getenv("COMPLETION_TIMESTAMP_POLICY", "latest").lower()
    grace_raw = _getenv("QUIZ_TIMER_GRACE_SECONDS", "30")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        notification_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"NOTIFICATION_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if notification_timeout <= 0:
        raise ValueError(
            f"NOTIFICATION_TIMEOUT_SECONDS must be positive (got {timeout_raw!r})"
        )

    if policy_raw not in ("latest", "first"):
        raise ValueError(
            f"COMPLETION_TIMESTAMP_POLICY must be latest|first (got {policy_raw!r})"
        )

    try:
        grace = int(grace_raw)
    except ValueError:
        raise ValueError(
            f"QUIZ_TIMER_GRACE_SECONDS must be an integer (got {grace_raw!r})"
        ) from None
    if grace < 0:
        raise ValueError(
            f"QUIZ_TIMER_GRACE_SECONDS must be >= 0 (got {grace_raw!r})"
        )

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    notification_url = _getenv("NOTIFICATION_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        notification_url=notification_url,
        notification_timeout_seconds=notification_timeout,
        completion_timestamp_policy=policy_raw,  # type: ignore[arg-type]
        quiz_timer_grace_seconds=grace,
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
