"""Shared fixtures for Watcher integration tests.

Fakes live in ``watch_fakes``; the fixtures here build fresh instances per
test and make sure every watcher a test creates is stopped afterwards.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from watch_fakes import ListMock, StreamTracker, VirtualClock, object_filter

from kubemirror.collector.backoff import Backoff
from kubemirror.collector.watcher import Watcher


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def list_mock() -> ListMock:
    return ListMock()


@pytest.fixture
def tracker() -> StreamTracker:
    return StreamTracker()


@pytest.fixture
async def make_watcher(clock: VirtualClock) -> AsyncIterator[Callable[..., Watcher]]:
    """Factory for watchers whose back-off runs on the virtual clock."""
    created: list[Watcher] = []

    def _make(
        list_client: Any,
        stream_source: Any,
        flt: Callable[[dict[str, Any]], Any] = object_filter,
    ) -> Watcher:
        watcher = Watcher("test", list_client, stream_source, flt, backoff=Backoff(sleep=clock.sleep))
        created.append(watcher)
        return watcher

    yield _make
    for watcher in created:
        watcher.stop()
    # let the cancelled reader and sync tasks unwind
    await asyncio.sleep(0)
