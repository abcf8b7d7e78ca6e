"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class BackoffConfig:
    """Supervisor retry delay configuration."""

    initial_seconds: float = 1.0
    max_seconds: float = 300.0
    multiplier: float = 2.0
    reset_after_seconds: float = 30.0


@dataclass
class WatchConfig:
    """Watch stream configuration."""

    timeout_seconds: int = 300
    stop_timeout_seconds: float = 10.0


@dataclass
class KubernetesConfig:
    """Credential source selection for the API server connection."""

    kubeconfig: str = ""
    context: str = ""


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    renderer: str = "json"


@dataclass
class KubeMirrorConfig:
    """Top-level kubemirror configuration."""

    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    log: LogConfig = field(default_factory=LogConfig)
