"""Kubernetes API adapters that feed a Watcher.

Exports:
    CustomObjectListClient   -- list client for custom resources.
    CustomObjectStreamSource -- watch stream source for custom resources.
    WatchStream              -- a single raw watch connection.
"""

from kubemirror.client.kubernetes import CustomObjectListClient, CustomObjectStreamSource, WatchStream

__all__ = ["CustomObjectListClient", "CustomObjectStreamSource", "WatchStream"]
