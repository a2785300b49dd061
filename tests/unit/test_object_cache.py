"""Tests for ObjectCache: upsert/remove semantics and list reconciliation."""

from __future__ import annotations

from typing import Any

from hypothesis import given
from hypothesis import strategies as st

from kubemirror.cache.object_cache import ObjectCache
from kubemirror.models.objects import WatcherEvent

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _obj(name: str, generation: int | None = 1, val: int = 150) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name}
    if generation is not None:
        metadata["generation"] = generation
    return {"kind": "mykind", "metadata": metadata, "spec": {"val": val}}


def _val_filter(raw: dict[str, Any]) -> dict[str, Any] | None:
    val = raw["spec"]["val"]
    return {"name": raw["metadata"]["name"], "val": val} if val > 100 else None


def _cache() -> ObjectCache:
    return ObjectCache(_val_filter, kind="mykind")


# ---------------------------------------------------------------------------
# upsert
# ---------------------------------------------------------------------------


class TestUpsert:
    def test_new_object_accepted_by_filter(self) -> None:
        cache = _cache()
        change = cache.upsert(_obj("a"), 1)

        assert change is not None
        assert change.event is WatcherEvent.NEW
        assert change.value == {"name": "a", "val": 150}
        assert cache.get_raw("a") == _obj("a")
        assert "a" in cache

    def test_new_object_rejected_by_filter(self) -> None:
        cache = _cache()
        assert cache.upsert(_obj("a", val=5), 1) is None
        assert len(cache) == 0

    def test_newer_generation_is_modification(self) -> None:
        cache = _cache()
        cache.upsert(_obj("a", 1), 1)

        change = cache.upsert(_obj("a", 2, 160), 2)

        assert change is not None
        assert change.event is WatcherEvent.MOD
        assert change.value == {"name": "a", "val": 160}
        entry = cache.get("a")
        assert entry is not None
        assert entry.generation == 2

    def test_same_generation_is_dropped(self) -> None:
        cache = _cache()
        cache.upsert(_obj("a", 3, 150), 3)

        assert cache.upsert(_obj("a", 3, 999), 3) is None
        assert cache.list() == [{"name": "a", "val": 150}]

    def test_missing_generation_always_applies(self) -> None:
        cache = _cache()
        cache.upsert(_obj("a", 3), 3)

        change = cache.upsert(_obj("a", None, 170), None)

        assert change is not None
        assert change.event is WatcherEvent.MOD
        # and an object without generation accepts any later update
        assert cache.upsert(_obj("a", 1, 180), 1) is not None

    def test_identical_payload_is_silent(self) -> None:
        cache = _cache()
        cache.upsert(_obj("a", None), None)
        assert cache.upsert(_obj("a", None), None) is None

    def test_rejected_update_removes_tracked_object(self) -> None:
        cache = _cache()
        cache.upsert(_obj("a", 1, 150), 1)

        change = cache.upsert(_obj("a", 2, 50), 2)

        assert change is not None
        assert change.event is WatcherEvent.DEL
        assert change.value == {"name": "a", "val": 150}
        assert cache.get_raw("a") is None

    def test_rejected_update_with_older_generation_still_removes(self) -> None:
        """Rejection wins over the staleness rule."""
        cache = _cache()
        cache.upsert(_obj("x", 2, 150), 2)

        change = cache.upsert(_obj("x", 1, 50), 1)

        assert change is not None
        assert change.event is WatcherEvent.DEL
        assert change.value == {"name": "x", "val": 150}
        assert "x" not in cache

    def test_rejected_update_with_same_generation_still_removes(self) -> None:
        cache = _cache()
        cache.upsert(_obj("x", 2, 150), 2)

        change = cache.upsert(_obj("x", 2, 50), 2)

        assert change is not None
        assert change.event is WatcherEvent.DEL
        assert len(cache) == 0

    def test_nameless_object_is_ignored(self) -> None:
        cache = _cache()
        assert cache.upsert({"kind": "mykind", "metadata": {}, "spec": {"val": 200}}, None) is None
        assert len(cache) == 0

    def test_filter_exception_is_a_rejection(self) -> None:
        def broken(raw: dict[str, Any]) -> Any:
            raise KeyError("spec")

        cache = ObjectCache(broken)
        assert cache.upsert(_obj("a"), 1) is None
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# remove
# ---------------------------------------------------------------------------


class TestRemove:
    def test_remove_tracked_returns_last_value(self) -> None:
        cache = _cache()
        cache.upsert(_obj("a", 1, 150), 1)
        cache.upsert(_obj("a", 2, 155), 2)

        change = cache.remove("a")

        assert change is not None
        assert change.event is WatcherEvent.DEL
        assert change.value == {"name": "a", "val": 155}
        assert len(cache) == 0

    def test_remove_unknown_is_none(self) -> None:
        assert _cache().remove("ghost") is None


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_initial_list_announces_accepted_objects_in_order(self) -> None:
        cache = _cache()
        changes = cache.reconcile([_obj("b"), _obj("low", val=1), _obj("a")])

        assert [(c.event, c.value["name"]) for c in changes] == [
            (WatcherEvent.NEW, "b"),
            (WatcherEvent.NEW, "a"),
        ]
        assert [v["name"] for v in cache.list()] == ["b", "a"]

    def test_merge_with_existing_state(self) -> None:
        cache = _cache()
        cache.reconcile([_obj("retained", 2), _obj("modified", 1), _obj("deleted", 1)])

        changes = cache.reconcile([_obj("retained", 2), _obj("modified", 2, 156), _obj("created", 1)])

        assert [(c.event, c.value["name"]) for c in changes] == [
            (WatcherEvent.MOD, "modified"),
            (WatcherEvent.NEW, "created"),
            (WatcherEvent.DEL, "deleted"),
        ]
        assert cache.names() == {"retained", "modified", "created"}

    def test_stale_list_entry_keeps_newer_cached_copy(self) -> None:
        cache = _cache()
        cache.upsert(_obj("a", 5, 170), 5)

        changes = cache.reconcile([_obj("a", 4, 160)])

        assert changes == []
        assert cache.get_raw("a") == _obj("a", 5, 170)

    def test_empty_list_removes_everything(self) -> None:
        cache = _cache()
        cache.reconcile([_obj("a"), _obj("b")])

        changes = cache.reconcile([])

        assert {c.event for c in changes} == {WatcherEvent.DEL}
        assert len(cache) == 0

    @given(vals=st.dictionaries(st.from_regex(r"[a-z]{1,8}", fullmatch=True), st.integers(0, 300), max_size=20))
    def test_cache_holds_exactly_objects_passing_filter(self, vals: dict[str, int]) -> None:
        cache = _cache()
        cache.reconcile([_obj(name, 1, val) for name, val in vals.items()])

        assert cache.names() == {name for name, val in vals.items() if val > 100}
        for entry in cache:
            assert entry.filtered == _val_filter(entry.raw)
