"""Collector package for kubemirror.

Keeps an in-memory mirror of one Kubernetes resource kind consistent with
the API server by combining list requests with watch streams.

Submodules
----------
watcher  -- Watcher: sync/resync state machine, event deferral, lifecycle events.
backoff  -- Exponential back-off policy shared by every retry path.
stream   -- Newline framing and decoding of watch-stream records.
emitter  -- Synchronous fan-out of lifecycle events to listeners.
"""

from kubemirror.collector.backoff import Backoff, backoff_delay
from kubemirror.collector.emitter import EventEmitter
from kubemirror.collector.watcher import ListClient, StreamHandle, StreamSource, Watcher

__all__ = [
    "Backoff",
    "EventEmitter",
    "ListClient",
    "StreamHandle",
    "StreamSource",
    "Watcher",
    "backoff_delay",
]
