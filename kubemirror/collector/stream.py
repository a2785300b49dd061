"""Watch-stream framing and record decoding.

The Kubernetes watch API sends one JSON document per line::

    {"type": "MODIFIED", "object": {"metadata": {"name": "a", ...}, ...}}

Transport chunks do not respect line boundaries, so chunks are accumulated in
a LineBuffer until a newline completes a record.
"""

from __future__ import annotations

import codecs
import json

from kubemirror.models.objects import WatchEvent


class LineBuffer:
    """Splits an arbitrary sequence of text or byte chunks into lines.

    Byte chunks go through an incremental UTF-8 decoder, so a character split
    across two chunks is reassembled.
    """

    def __init__(self) -> None:
        self._partial = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: str | bytes) -> list[str]:
        """Add *chunk* and return every line it completed (without newlines)."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        data = self._partial + chunk
        *lines, self._partial = data.split("\n")
        return lines

    def flush(self) -> str | None:
        """Return the unterminated remainder, if any, and reset the buffer."""
        rest = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        self._decoder.reset()
        return rest or None


def parse_event(line: str) -> WatchEvent | None:
    """Decode one watch record, or return None if it is not a valid record."""
    line = line.strip()
    if not line:
        return None
    try:
        doc = json.loads(line)
    except ValueError:
        return None
    if not isinstance(doc, dict):
        return None
    event_type = doc.get("type")
    obj = doc.get("object")
    if not isinstance(event_type, str) or not isinstance(obj, dict):
        return None
    return WatchEvent(type=event_type, object=obj)
