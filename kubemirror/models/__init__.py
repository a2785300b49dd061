"""Core data structures for kubemirror."""

from kubemirror.models.config import KubeMirrorConfig
from kubemirror.models.objects import (
    CacheChange,
    CacheEntry,
    ListResult,
    WatcherEvent,
    WatcherState,
    WatchEvent,
    WatchEventType,
    object_generation,
    object_name,
)

__all__ = [
    "CacheChange",
    "CacheEntry",
    "KubeMirrorConfig",
    "ListResult",
    "WatchEvent",
    "WatchEventType",
    "WatcherEvent",
    "WatcherState",
    "object_generation",
    "object_name",
]
