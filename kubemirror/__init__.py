"""kubemirror: a filtered, in-memory mirror of Kubernetes list/watch resources."""

__version__ = "0.1.0"
