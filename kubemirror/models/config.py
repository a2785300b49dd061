"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ResourceConfig:
    """The custom resource being mirrored."""

    kind: str = ""
    group: str = ""
    version: str = "v1"
    plural: str = ""
    namespace: str = ""


@dataclass
class WatchConfig:
    """Watch stream and retry configuration."""

    timeout_seconds: int = 300
    backoff_initial: float = 1.0
    backoff_max: float | None = 300.0


@dataclass
class APIConfig:
    """REST API configuration."""

    enabled: bool = True
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class KubeMirrorConfig:
    """Top-level kubemirror configuration."""

    resource: ResourceConfig = field(default_factory=ResourceConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
