"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubemirror.models.config import (
    BackoffConfig,
    KubeMirrorConfig,
    KubernetesConfig,
    LogConfig,
    WatchConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEMIRROR_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_backoff(backoff: BackoffConfig) -> BackoffConfig:
    if backoff.max_seconds < backoff.initial_seconds:
        raise ValueError(
            f"Backoff ceiling ({backoff.max_seconds}s) is below its floor ({backoff.initial_seconds}s)"
        )
    return backoff


def load_config() -> KubeMirrorConfig:
    """Load configuration from KUBEMIRROR_* environment variables."""
    return KubeMirrorConfig(
        backoff=_validate_backoff(
            BackoffConfig(
                initial_seconds=_env_float("BACKOFF_INITIAL_SECONDS", 1.0, min_val=0.01),
                max_seconds=_env_float("BACKOFF_MAX_SECONDS", 300.0, min_val=0.01),
                multiplier=_env_float("BACKOFF_MULTIPLIER", 2.0, min_val=1.0),
                reset_after_seconds=_env_float("BACKOFF_RESET_AFTER_SECONDS", 30.0, min_val=0.0),
            )
        ),
        watch=WatchConfig(
            timeout_seconds=_env_int("WATCH_TIMEOUT_SECONDS", 300, min_val=30, max_val=3600),
            stop_timeout_seconds=_env_float("STOP_TIMEOUT_SECONDS", 10.0, min_val=0.1),
        ),
        kubernetes=KubernetesConfig(
            kubeconfig=_env("KUBECONFIG", ""),
            context=_env("CONTEXT", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            renderer=_env("LOG_RENDERER", "json"),
        ),
    )
