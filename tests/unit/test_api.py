"""Tests for the read-only REST view."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from kubemirror.api.app import create_app
from kubemirror.models.objects import WatcherState

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_RAW = {"kind": "MayastorPool", "metadata": {"name": "pool-1", "generation": 2}, "spec": {"node": "n1"}}


def _make_watcher(state: WatcherState = WatcherState.WATCHING, raw: dict[str, Any] | None = None) -> MagicMock:
    watcher = MagicMock()
    watcher.state = state
    watcher.kind = "MayastorPool"
    watcher.list = MagicMock(return_value=[{"name": "pool-1"}])
    watcher.get_raw = MagicMock(side_effect=lambda name: raw if raw and name == "pool-1" else None)
    return watcher


def _client(watcher: MagicMock | None = None) -> TestClient:
    app = create_app(watcher=watcher or _make_watcher(raw=_RAW))
    return TestClient(app, raise_server_exceptions=False)


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------


class TestHealth:
    @pytest.mark.parametrize(
        ("state", "status"),
        [
            (WatcherState.WATCHING, "ok"),
            (WatcherState.SYNCING, "syncing"),
            (WatcherState.STOPPED, "stopped"),
        ],
    )
    def test_status_follows_watcher_state(self, state: WatcherState, status: str) -> None:
        resp = _client(_make_watcher(state)).get("/api/v1/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == status
        assert body["state"] == state.value
        assert body["kind"] == "MayastorPool"
        assert body["objects"] == 1


# ---------------------------------------------------------------------------
# /objects
# ---------------------------------------------------------------------------


class TestObjects:
    def test_list_returns_filtered_values(self) -> None:
        resp = _client().get("/api/v1/objects")

        assert resp.status_code == 200
        assert resp.json() == {"kind": "MayastorPool", "items": [{"name": "pool-1"}]}

    def test_get_returns_raw_object(self) -> None:
        resp = _client().get("/api/v1/objects/pool-1")

        assert resp.status_code == 200
        assert resp.json() == _RAW

    def test_unknown_object_is_404_envelope(self) -> None:
        resp = _client().get("/api/v1/objects/missing")

        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "NOT_FOUND"
        assert "missing" in body["detail"]

    def test_unexpected_error_is_500_envelope(self) -> None:
        watcher = _make_watcher()
        watcher.list = MagicMock(side_effect=RuntimeError("boom"))

        resp = _client(watcher).get("/api/v1/objects")

        assert resp.status_code == 500
        assert resp.json() == {"error": "INTERNAL_ERROR", "detail": "An unexpected error occurred."}


# ---------------------------------------------------------------------------
# /metrics
# ---------------------------------------------------------------------------


class TestMetrics:
    def test_prometheus_exposition(self) -> None:
        from kubemirror.observability.metrics import cached_objects

        cached_objects.labels(kind="MayastorPool").set(1)

        resp = _client().get("/metrics")

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert "kubemirror_cached_objects" in resp.text
