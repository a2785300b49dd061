"""Generation-based staleness detection.

The rule is asymmetric: an update is applied unless both the
incoming and the cached object carry a generation and the incoming one is
not strictly greater.  A missing generation on either side always lets the
update through.
"""

from __future__ import annotations

from enum import StrEnum


class Freshness(StrEnum):
    """Outcome of comparing an incoming generation with the cached one."""

    ABSENT = "absent"
    NEWER = "newer"
    STALE = "stale"


def compare_generations(incoming: int | None, cached: int | None) -> Freshness:
    if incoming is None or cached is None:
        return Freshness.ABSENT
    if incoming > cached:
        return Freshness.NEWER
    return Freshness.STALE


def is_fresh(incoming: int | None, cached: int | None) -> bool:
    """Return True if an update with *incoming* generation may replace *cached*."""
    return compare_generations(incoming, cached) is not Freshness.STALE
