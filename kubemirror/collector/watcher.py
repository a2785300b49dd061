"""Watcher: list + watch reconciliation for one resource kind.

A Watcher keeps an ObjectCache consistent with the API server and tells
listeners about every visible change through four events:

    new(value)   -- an accepted object appeared
    mod(value)   -- an accepted object changed
    del(value)   -- an accepted object disappeared (or stopped passing the filter)
    sync()       -- a resync finished; the cache matches the server again

State machine::

    STOPPED --start()--> SYNCING --list ok--> WATCHING --stream ended--> SYNCING ...
       ^                                                                   |
       +------------------------------ stop() -----------------------------+

While SYNCING, records from the current watch stream are decoded and queued
in arrival order.  Once the list result has been merged into the cache the
queue is drained through the same path used in WATCHING, so a watch event
that raced the list is applied after it and the staleness rule decides which
copy wins.

Failures (list error, non-2xx list, stream ending mid-sync) are retried
forever with exponential back-off; nothing is raised to the caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Protocol

from kubemirror.cache.object_cache import ObjectCache, ObjectFilter
from kubemirror.collector.backoff import Backoff
from kubemirror.collector.emitter import EventEmitter
from kubemirror.collector.stream import LineBuffer, parse_event
from kubemirror.models.objects import (
    CacheChange,
    ListResult,
    WatcherEvent,
    WatcherState,
    WatchEvent,
    WatchEventType,
)
from kubemirror.observability.logging import get_logger
from kubemirror.observability.metrics import (
    discarded_records_total,
    resyncs_total,
    sync_failures_total,
    watch_events_total,
)

_MAX_LOGGED_RECORD = 200


class ListClient(Protocol):
    """One-shot "get all" request for the watched collection."""

    async def list(self) -> ListResult: ...


class StreamHandle(Protocol):
    """A single watch connection: raw text chunks until it ends."""

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...

    def close(self) -> None: ...


class StreamSource(Protocol):
    """Opens a new watch connection on every call."""

    def open_stream(self) -> StreamHandle: ...


class Watcher(EventEmitter):
    """Mirror of one resource kind, fed by a list client and a stream source.

    Args:
        kind:          Resource kind label; used in logs and metrics only.
        list_client:   Provides the full collection on demand.
        stream_source: Opens watch streams.
        object_filter: ``raw -> value``; None hides the object from the mirror.
        backoff:       Retry policy; defaults to 1s doubling without limit.
    """

    def __init__(
        self,
        kind: str,
        list_client: ListClient,
        stream_source: StreamSource,
        object_filter: ObjectFilter,
        *,
        backoff: Backoff | None = None,
    ) -> None:
        super().__init__()
        self._kind = kind
        self._list_client = list_client
        self._stream_source = stream_source
        self._cache = ObjectCache(object_filter, kind=kind)
        self._backoff = backoff or Backoff()
        self._log = get_logger("collector.watcher", kind=kind)

        self._state = WatcherState.STOPPED
        # records received while SYNCING, in arrival order
        self._pending: list[WatchEvent] = []

        self._stream: StreamHandle | None = None
        self._stream_ended = False
        self._reader_task: asyncio.Task[None] | None = None
        self._sync_task: asyncio.Task[None] | None = None
        self._ready: asyncio.Future[None] | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def cache(self) -> ObjectCache:
        return self._cache

    def list(self) -> list[Any]:
        """Filtered values of every object currently in the mirror."""
        return self._cache.list()

    def get_raw(self, name: str) -> dict[str, Any] | None:
        """Last raw object received for *name*, or None if it is not mirrored."""
        return self._cache.get_raw(name)

    async def start(self) -> None:
        """Start watching and return once the first sync has completed.

        Calling start() on a running watcher just waits for (or returns after)
        the first sync.  If stop() is called before the first sync completes,
        start() returns without raising.
        """
        if self._state is WatcherState.STOPPED:
            self._ready = asyncio.get_running_loop().create_future()
            self._cache.clear()
            self._pending.clear()
            self._backoff.reset()
            self._state = WatcherState.SYNCING
            self._log.info("watcher_starting")
            self._spawn_sync(resync=False)

        assert self._ready is not None
        await asyncio.shield(self._ready)

    def stop(self) -> None:
        """Stop watching.  Safe to call in any state, any number of times."""
        if self._state is WatcherState.STOPPED:
            return
        self._state = WatcherState.STOPPED

        if self._sync_task is not None and not self._sync_task.done():
            self._sync_task.cancel()
        self._sync_task = None
        self._close_stream()
        self._pending.clear()

        if self._ready is not None and not self._ready.done():
            self._ready.set_result(None)
        self._log.info("watcher_stopped", objects=len(self._cache))

    # ------------------------------------------------------------------
    # Synchronisation
    # ------------------------------------------------------------------

    def _spawn_sync(self, resync: bool) -> None:
        task = asyncio.create_task(self._synchronize(resync), name=f"watcher-sync-{self._kind}")
        task.add_done_callback(self._on_sync_done)
        self._sync_task = task

    def _on_sync_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self._log.error("sync_task_crashed", error=str(exc), exc_info=exc)
        if self._ready is not None and not self._ready.done():
            self._ready.set_exception(exc)

    async def _synchronize(self, resync: bool) -> None:
        """Run sync attempts until one succeeds or the watcher is stopped."""
        while self._state is not WatcherState.STOPPED:
            self._state = WatcherState.SYNCING

            if self._stream is None or self._stream_ended:
                if not self._open_stream():
                    await self._retry("stream_ended")
                    continue

            try:
                result = await self._list_client.list()
            except Exception as exc:
                self._log.warning("list_failed", error=str(exc), attempt=self._backoff.attempts + 1)
                await self._retry("list_error")
                continue

            if not result.ok:
                self._log.warning("list_failed", status=result.status, attempt=self._backoff.attempts + 1)
                await self._retry("list_error")
                continue

            if self._stream_ended:
                # the watch died while we were listing; events may have been missed
                self._log.warning("watch_ended_during_sync", attempt=self._backoff.attempts + 1)
                await self._retry("stream_ended")
                continue

            self._backoff.reset()
            for change in self._cache.reconcile(result.items):
                if self._state is WatcherState.STOPPED:
                    return
                self._announce(change)
            self._drain()
            if self._state is WatcherState.STOPPED:
                return

            self._state = WatcherState.WATCHING
            self._log.info("watcher_synced", resync=resync, objects=len(self._cache))
            if resync:
                self.emit(WatcherEvent.SYNC)
                watch_events_total.labels(kind=self._kind, event=WatcherEvent.SYNC.value).inc()
            if self._ready is not None and not self._ready.done():
                self._ready.set_result(None)
            return

    async def _retry(self, reason: str) -> None:
        sync_failures_total.labels(kind=self._kind, reason=reason).inc()
        self._log.info("sync_retry_scheduled", reason=reason, delay=self._backoff.peek())
        await self._backoff.wait()

    def _drain(self) -> None:
        pending, self._pending = self._pending, []
        for event in pending:
            if self._state is WatcherState.STOPPED:
                return
            self._apply(event)

    # ------------------------------------------------------------------
    # Watch stream handling
    # ------------------------------------------------------------------

    def _open_stream(self) -> bool:
        """Replace the current stream with a fresh one; False if opening failed."""
        self._close_stream()
        self._pending.clear()
        self._stream_ended = False
        try:
            stream = self._stream_source.open_stream()
        except Exception as exc:
            self._log.warning("watch_open_failed", error=str(exc))
            self._stream_ended = True
            return False
        self._stream = stream
        self._reader_task = asyncio.create_task(self._consume(stream), name=f"watcher-stream-{self._kind}")
        return True

    def _close_stream(self) -> None:
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
        self._reader_task = None
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.close()
            except Exception as exc:
                self._log.debug("watch_close_failed", error=str(exc))

    async def _consume(self, stream: StreamHandle) -> None:
        buffer = LineBuffer()
        try:
            async for chunk in stream:
                for line in buffer.feed(chunk):
                    self._on_line(stream, line)
            tail = buffer.flush()
            if tail is not None:
                self._on_line(stream, tail)
        except Exception as exc:
            if stream is self._stream:
                self._log.warning("watch_stream_failed", error=str(exc))
        self._on_stream_end(stream)

    def _on_line(self, stream: StreamHandle, line: str) -> None:
        if stream is not self._stream or self._state is WatcherState.STOPPED:
            return
        event = parse_event(line)
        if event is None:
            if line.strip():
                self._log.debug("malformed_record_discarded", record=line[:_MAX_LOGGED_RECORD])
                discarded_records_total.labels(kind=self._kind, reason="malformed").inc()
            return
        if self._state is WatcherState.SYNCING:
            self._pending.append(event)
        else:
            self._apply(event)

    def _on_stream_end(self, stream: StreamHandle) -> None:
        if stream is not self._stream:
            return
        self._stream_ended = True
        if self._state is WatcherState.WATCHING:
            self._log.info("watch_stream_ended_resyncing")
            resyncs_total.labels(kind=self._kind).inc()
            self._state = WatcherState.SYNCING
            self._spawn_sync(resync=True)

    # ------------------------------------------------------------------
    # Event application
    # ------------------------------------------------------------------

    def _apply(self, event: WatchEvent) -> None:
        change: CacheChange | None
        if event.type in (WatchEventType.ADDED, WatchEventType.MODIFIED):
            change = self._cache.upsert(event.object, event.generation)
        elif event.type == WatchEventType.DELETED:
            change = self._cache.remove(event.name)
        else:
            if event.type == WatchEventType.ERROR:
                self._log.warning("watch_error_record", message=str(event.object.get("message", "")))
            else:
                self._log.debug("unknown_record_type_ignored", type=event.type)
            discarded_records_total.labels(kind=self._kind, reason="unknown_type").inc()
            return
        if change is not None:
            self._announce(change)

    def _announce(self, change: CacheChange) -> None:
        watch_events_total.labels(kind=self._kind, event=change.event.value).inc()
        self.emit(change.event, change.value)
