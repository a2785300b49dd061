"""Entry point for `python -m kubemirror`.

Usage:
    python -m kubemirror
    KUBEMIRROR_GROUP=example.io KUBEMIRROR_PLURAL=widgets python -m kubemirror
"""

from __future__ import annotations

import asyncio

from kubemirror.app import main

asyncio.run(main())
