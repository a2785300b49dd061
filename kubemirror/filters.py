"""Ready-made object filters.

A filter maps a raw Kubernetes object to the value listeners receive, or to
None to keep the object out of the mirror.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from kubemirror.models.objects import object_generation, object_name


def summarize(raw: dict[str, Any]) -> dict[str, Any] | None:
    """Project *raw* to ``{name, namespace, generation, spec}``; None if nameless."""
    name = object_name(raw)
    if not name:
        return None
    metadata = raw.get("metadata") or {}
    return {
        "name": name,
        "namespace": metadata.get("namespace", ""),
        "generation": object_generation(raw),
        "spec": raw.get("spec") or {},
    }


def kind_filter(kind: str) -> Callable[[dict[str, Any]], dict[str, Any] | None]:
    """Build a filter that summarizes objects of *kind* and rejects all others.

    An empty *kind* accepts every object.
    """

    def _filter(raw: dict[str, Any]) -> dict[str, Any] | None:
        if kind and raw.get("kind") != kind:
            return None
        return summarize(raw)

    return _filter
