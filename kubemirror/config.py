"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubemirror.models.config import (
    APIConfig,
    KubeMirrorConfig,
    LogConfig,
    ResourceConfig,
    WatchConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEMIRROR_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    return float(_env(key, str(default)))


def _validate_positive(name: str, value: float) -> float:
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _validate_backoff_max(value: float) -> float | None:
    if value < 0:
        raise ValueError(f"BACKOFF_MAX must not be negative, got {value}")
    # 0 disables the cap
    return value or None


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeMirrorConfig:
    """Load configuration from KUBEMIRROR_* environment variables."""
    return KubeMirrorConfig(
        resource=ResourceConfig(
            kind=_env("KIND", ""),
            group=_env("GROUP", ""),
            version=_env("VERSION", "v1"),
            plural=_env("PLURAL", ""),
            namespace=_env("NAMESPACE", ""),
        ),
        watch=WatchConfig(
            timeout_seconds=_env_int("WATCH_TIMEOUT", 300, min_val=30, max_val=3600),
            backoff_initial=_validate_positive("BACKOFF_INITIAL", _env_float("BACKOFF_INITIAL", 1.0)),
            backoff_max=_validate_backoff_max(_env_float("BACKOFF_MAX", 300.0)),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
