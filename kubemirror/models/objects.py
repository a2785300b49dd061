"""Core data structures for mirrored objects and watch-stream records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class WatchEventType(StrEnum):
    """Record types sent by the Kubernetes watch API."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"


class WatcherState(StrEnum):
    """Lifecycle state of a Watcher."""

    STOPPED = "stopped"
    SYNCING = "syncing"
    WATCHING = "watching"


class WatcherEvent(StrEnum):
    """Lifecycle events emitted to downstream listeners."""

    NEW = "new"
    MOD = "mod"
    DEL = "del"
    SYNC = "sync"


@dataclass(frozen=True)
class WatchEvent:
    """One decoded record from a watch stream.

    ``type`` keeps the wire string as received so that unknown record types
    survive decoding and are discarded when the event is applied.
    """

    type: str
    object: dict[str, Any]

    @property
    def name(self) -> str:
        return object_name(self.object)

    @property
    def generation(self) -> int | None:
        return object_generation(self.object)


@dataclass
class CacheEntry:
    """A tracked object: last raw payload plus its filtered projection."""

    name: str
    raw: dict[str, Any]
    filtered: Any
    generation: int | None = None


@dataclass(frozen=True)
class CacheChange:
    """Outcome of a cache mutation the caller must announce to listeners."""

    event: WatcherEvent
    value: Any


@dataclass
class ListResult:
    """Response of a one-shot list request."""

    status: int
    items: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def object_name(raw: dict[str, Any]) -> str:
    """Return ``metadata.name`` of a raw object, or an empty string."""
    metadata = raw.get("metadata") if isinstance(raw, dict) else None
    if not isinstance(metadata, dict):
        return ""
    name = metadata.get("name")
    return name if isinstance(name, str) else ""


def object_generation(raw: dict[str, Any]) -> int | None:
    """Return ``metadata.generation`` of a raw object.

    Anything that is not an integer (missing, null, a string) means the
    source supplied no ordering information.
    """
    metadata = raw.get("metadata") if isinstance(raw, dict) else None
    if not isinstance(metadata, dict):
        return None
    generation = metadata.get("generation")
    if isinstance(generation, bool) or not isinstance(generation, int):
        return None
    return generation
