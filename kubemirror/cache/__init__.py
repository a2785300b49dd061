"""Cache layer for kubemirror.

Holds the in-memory mirror of watched objects and decides, per update,
whether listeners must be told about it.

Submodules:
    staleness     -- Generation comparison (absent / newer / stale).
    object_cache  -- Keyed store of raw objects plus filtered values.
"""

from kubemirror.cache.object_cache import ObjectCache, ObjectFilter
from kubemirror.cache.staleness import Freshness, compare_generations, is_fresh

__all__ = ["Freshness", "ObjectCache", "ObjectFilter", "compare_generations", "is_fresh"]
