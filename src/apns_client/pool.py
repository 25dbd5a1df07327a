from __future__ import annotations

import threading
from typing import Any, List, Mapping, Protocol, Union

from loguru import logger

from .connection import Connection, ConnectionConfig


class ConnectionPoolProtocol(Protocol):
    """What Delivery needs from a pool: check a connection out, hand it back."""

    def acquire(self) -> Connection: ...

    def release(self, connection: Connection) -> None: ...


class ConnectionPool:
    """
    Thread-safe LIFO pool of idle gateway connections.

    acquire() hands out the most recently released connection, or opens a
    new one when none is idle. release() keeps up to ``max_idle``
    connections and closes the surplus. Each checked-out connection belongs
    to exactly one caller until it is released.
    """

    def __init__(
        self, config: Union[ConnectionConfig, Mapping[str, Any]], max_idle: int = 4
    ):
        if max_idle <= 0:
            raise ValueError("max_idle must be > 0")
        self._cfg = ConnectionConfig.coerce(config).require()
        self._max_idle = max_idle
        self._idle: List[Connection] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def idle(self) -> int:
        return len(self._idle)

    def acquire(self) -> Connection:
        with self._lock:
            if self._closed:
                raise RuntimeError("ConnectionPool is closed")
            if self._idle:
                return self._idle.pop()
        # connect outside the lock; the handshake can take a while
        return Connection(self._cfg)

    def release(self, connection: Connection) -> None:
        with self._lock:
            if not self._closed and len(self._idle) < self._max_idle:
                self._idle.append(connection)
                return
        connection.close()
        logger.debug("Closed surplus pooled connection")

    def close(self) -> None:
        with self._lock:
            self._closed = True
            idle, self._idle = self._idle, []
        for conn in idle:
            conn.close()

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
