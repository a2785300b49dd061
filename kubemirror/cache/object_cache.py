"""In-memory mirror of watched objects.

Every entry keeps the last raw payload received from the API server together
with the filter's projection of it.  Entries exist only for objects the
filter accepted; rejecting a previously accepted object removes its entry.

Mutations never emit anything themselves.  They return a CacheChange that
tells the caller which lifecycle event (new/mod/del) to announce, or None
when the mutation is invisible to listeners.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Any

import structlog

from kubemirror.cache.staleness import is_fresh
from kubemirror.models.objects import CacheChange, CacheEntry, WatcherEvent, object_generation, object_name
from kubemirror.observability.metrics import cached_objects

_log = structlog.get_logger(component="cache")

ObjectFilter = Callable[[dict[str, Any]], Any]


class ObjectCache:
    """Keyed store of raw objects and their filtered values.

    Args:
        object_filter: ``raw -> value``; returning ``None`` rejects the object.
        kind:          Resource kind label used in logs and metrics.
    """

    def __init__(self, object_filter: ObjectFilter, kind: str = "") -> None:
        self._filter = object_filter
        self._kind = kind
        # insertion ordered; list() follows this order
        self._entries: dict[str, CacheEntry] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self) -> list[Any]:
        """Return the filtered values of all tracked objects."""
        return [entry.filtered for entry in self._entries.values()]

    def get(self, name: str) -> CacheEntry | None:
        return self._entries.get(name)

    def get_raw(self, name: str) -> dict[str, Any] | None:
        """Return the last raw payload stored for *name*, or None."""
        entry = self._entries.get(name)
        return entry.raw if entry is not None else None

    def names(self) -> set[str]:
        return set(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(list(self._entries.values()))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Drop every entry without producing changes."""
        self._entries.clear()
        self._update_gauge()

    def upsert(self, raw: dict[str, Any], generation: int | None) -> CacheChange | None:
        """Insert or replace the entry for *raw*.

        Returns:
            NEW  -- the object was not tracked and the filter accepted it.
            MOD  -- the tracked object was replaced by a different payload.
            DEL  -- the filter rejected an object that was tracked.
            None -- stale, identical, nameless, or rejected and untracked.
        """
        name = object_name(raw)
        if not name:
            _log.debug("object_without_name_ignored", kind=self._kind)
            return None

        existing = self._entries.get(name)
        filtered = self._apply_filter(name, raw)
        if filtered is None:
            # rejection removes regardless of generation
            if existing is None:
                return None
            return self.remove(name)

        if existing is not None and not is_fresh(generation, existing.generation):
            _log.debug(
                "stale_update_dropped",
                kind=self._kind,
                name=name,
                generation=generation,
                cached_generation=existing.generation,
            )
            return None

        self._entries[name] = CacheEntry(name=name, raw=raw, filtered=filtered, generation=generation)
        if existing is None:
            self._update_gauge()
            return CacheChange(WatcherEvent.NEW, filtered)
        if existing.raw == raw:
            return None
        return CacheChange(WatcherEvent.MOD, filtered)

    def remove(self, name: str) -> CacheChange | None:
        """Delete *name*; returns DEL with the last filtered value, or None if unknown."""
        entry = self._entries.pop(name, None)
        if entry is None:
            return None
        self._update_gauge()
        return CacheChange(WatcherEvent.DEL, entry.filtered)

    def reconcile(self, items: Iterable[dict[str, Any]]) -> list[CacheChange]:
        """Merge a fresh list result into the cache.

        Listed objects are upserted in list order (accepted ones still subject
        to the staleness rule), then every tracked name missing from the list is
        removed.
        """
        changes: list[CacheChange] = []
        seen: set[str] = set()
        for raw in items:
            name = object_name(raw)
            if name:
                seen.add(name)
            change = self.upsert(raw, object_generation(raw))
            if change is not None:
                changes.append(change)

        for name in [n for n in self._entries if n not in seen]:
            change = self.remove(name)
            if change is not None:
                changes.append(change)
        return changes

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply_filter(self, name: str, raw: dict[str, Any]) -> Any:
        try:
            return self._filter(raw)
        except Exception as exc:
            # filter errors count as a rejection
            _log.warning("object_filter_failed", kind=self._kind, name=name, error=str(exc))
            return None

    def _update_gauge(self) -> None:
        cached_objects.labels(kind=self._kind).set(len(self._entries))

