"""
Thread-safe message identifier allocation.

Identifiers travel in a 4-byte field of the enhanced notification frame,
so the counter wraps back to 1 before reaching 2**32.
"""

from __future__ import annotations

import threading
from typing import Optional

MAX_MESSAGE_ID = 1 << 32


class MessageIdAllocator:
    """Wrapping counter handing out unique message identifiers.

    Usage:
        ids = MessageIdAllocator()
        msg = Message.create(token, payload, allocator=ids)
    """

    def __init__(self, start: Optional[int] = None):
        if start is not None and not (0 < start < MAX_MESSAGE_ID):
            raise ValueError(f"start must be in [1, {MAX_MESSAGE_ID})")
        self._last = start
        self._lock = threading.Lock()

    @property
    def last(self) -> Optional[int]:
        return self._last

    def next(self) -> int:
        with self._lock:
            nxt = 1 if self._last is None else self._last + 1
            if nxt >= MAX_MESSAGE_ID:
                nxt = 1
            self._last = nxt
            return nxt
