"""Prometheus collectors for watcher activity."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

watch_events_total = Counter(
    "kubemirror_watch_events_total",
    "Lifecycle events emitted to listeners",
    ["kind", "event"],
)

resyncs_total = Counter(
    "kubemirror_resyncs_total",
    "Resyncs started after a watch stream ended",
    ["kind"],
)

sync_failures_total = Counter(
    "kubemirror_sync_failures_total",
    "Failed sync attempts (list_error, stream_ended)",
    ["kind", "reason"],
)

discarded_records_total = Counter(
    "kubemirror_discarded_records_total",
    "Watch stream records dropped without touching the cache (malformed, unknown_type)",
    ["kind", "reason"],
)

cached_objects = Gauge(
    "kubemirror_cached_objects",
    "Objects currently held in the mirror",
    ["kind"],
)
