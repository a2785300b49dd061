"""Synchronous publish/subscribe for watcher lifecycle events.

Listeners are plain callables.  ``emit`` calls every listener registered for
the event, in registration order, before it returns; a listener that raises
is logged and skipped so that the remaining listeners still see the event.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

_log = structlog.get_logger(component="collector.emitter")

Listener = Callable[..., Any]


class _Subscription:
    __slots__ = ("listener", "once")

    def __init__(self, listener: Listener, once: bool) -> None:
        self.listener = listener
        self.once = once


class EventEmitter:
    """Fan-out of named events to any number of listeners."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[_Subscription]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Call *listener* every time *event* is emitted.  Returns *listener*."""
        self._subscriptions.setdefault(str(event), []).append(_Subscription(listener, once=False))
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Call *listener* on the next emission of *event* only."""
        self._subscriptions.setdefault(str(event), []).append(_Subscription(listener, once=True))
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove the first registration of *listener* for *event*, if any."""
        subs = self._subscriptions.get(str(event), [])
        for i, sub in enumerate(subs):
            if sub.listener == listener:
                del subs[i]
                return

    def listener_count(self, event: str) -> int:
        return len(self._subscriptions.get(str(event), []))

    def emit(self, event: str, *args: Any) -> int:
        """Deliver *event* to its current listeners; returns how many were called."""
        subs = self._subscriptions.get(str(event))
        if not subs:
            return 0
        # snapshot: listeners added during delivery wait for the next emission
        snapshot = list(subs)
        for sub in snapshot:
            if sub.once and sub in subs:
                subs.remove(sub)
        for sub in snapshot:
            try:
                sub.listener(*args)
            except Exception as exc:
                _log.error(
                    "listener_raised",
                    watcher_event=str(event),
                    listener=getattr(sub.listener, "__qualname__", repr(sub.listener)),
                    error=str(exc),
                )
        return len(snapshot)
