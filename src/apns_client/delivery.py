"""
Delivery engine.

Writes messages over one gateway connection without waiting for
acknowledgement while polling the same connection for error responses.
An error response names the first rejected message: the connection is
replaced and every message after the rejected one is sent again.

Exceptions inside the loop are absorbed with a two-tier budget: a
per-message limit after which the message is skipped, and a run-global
limit after which ExceptionLimitReached is raised.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from loguru import logger

from .connection import Connection, ConnectionConfig
from .cursor import MessageCursor
from .errors import ConfigError, ExceptionLimitReached
from .models import ErrorFrame, Message
from .pool import ConnectionPoolProtocol


class DeliveryState(str, Enum):
    RUNNING = "running"  # messages remain to be written
    DRAINING = "draining"  # all written, waiting for a trailing error response
    DONE = "done"


class ExceptionOutcome(str, Enum):
    RETRY = "retry"
    SKIP = "skip"  # per-message limit hit, move past the pending message
    FATAL = "fatal"  # run-global limit hit


@dataclass
class DeliveryCallbacks:
    """Optional observer hooks; each is called with the Delivery first.

    on_write(delivery, message)
    on_message_skip(delivery, message)
    on_exception(delivery, error, message)
    on_apns_error(delivery, status, message_id)
    """

    on_write: Optional[Callable[..., Any]] = None
    on_message_skip: Optional[Callable[..., Any]] = None
    on_exception: Optional[Callable[..., Any]] = None
    on_apns_error: Optional[Callable[..., Any]] = None

    @classmethod
    def coerce(
        cls, callbacks: Union["DeliveryCallbacks", Mapping[str, Callable[..., Any]], None]
    ) -> "DeliveryCallbacks":
        if callbacks is None:
            return cls()
        if isinstance(callbacks, cls):
            return callbacks
        known = {f.name for f in fields(cls)}
        unknown = set(callbacks) - known
        if unknown:
            raise ValueError(f"Unknown callbacks: {sorted(unknown)}")
        return cls(**dict(callbacks))


class Delivery:
    """
    Deliver a fixed list of messages over one connection.

    Usage:
        delivery = Delivery(
            messages,
            connection_config={"host": "gateway.push.apple.com", "cert": "/etc/apns.pem"},
            callbacks={"on_apns_error": lambda d, status, message_id: ...},
        )
        delivery.process()
    """

    def __init__(
        self,
        messages: Sequence[Message],
        *,
        connection_config: Union[ConnectionConfig, Mapping[str, Any], None],
        connection_pool: Optional[ConnectionPoolProtocol] = None,
        exception_limit: int = 20,
        exception_limit_per_message: int = 3,
        poll_timeout: float = 0.1,
        final_timeout: float = 2.0,
        callbacks: Union[DeliveryCallbacks, Mapping[str, Callable[..., Any]], None] = None,
    ):
        if connection_config is None:
            raise ConfigError("Missing option 'connection_config'")
        if exception_limit <= 0 or exception_limit_per_message <= 0:
            raise ValueError("exception limits must be > 0")

        self._cursor = MessageCursor(messages)
        self.connection_config = ConnectionConfig.coerce(connection_config).require()
        self.connection_pool = connection_pool
        self.exception_limit = exception_limit
        self.exception_limit_per_message = exception_limit_per_message
        self.poll_timeout = poll_timeout
        self.final_timeout = final_timeout
        self.callbacks = DeliveryCallbacks.coerce(callbacks)

        self.exceptions: List[Exception] = []
        # keyed by the message's position in the list
        self.exceptions_per_message: Dict[int, List[Exception]] = {}
        self.state = DeliveryState.RUNNING

        # Lazily acquired during process(), cleared on release
        self._connection: Optional[Connection] = None
        self._checked_out = False

    @property
    def messages(self):
        return self._cursor.messages

    @property
    def cursor(self) -> MessageCursor:
        return self._cursor

    # ---------- main loop ----------

    def process(self) -> None:
        """
        Send every message, resending after reported failures.

        Raises:
            ConfigError: the connection credentials cannot be loaded
            ExceptionLimitReached: exception_limit exceptions were caught
        """
        if not self._cursor.has_next():
            self._cursor.rewind()
        self.state = DeliveryState.RUNNING
        self.exceptions = []
        self.exceptions_per_message = {}

        try:
            while True:
                try:
                    self.state = self._step()
                except ConfigError:
                    raise
                except Exception as e:
                    outcome = self._handle_exception(e)
                    if outcome is ExceptionOutcome.FATAL:
                        raise ExceptionLimitReached(self.exception_limit, self.exceptions) from e
                    if not self._cursor.has_next():
                        self.state = DeliveryState.DONE

                if self.state is DeliveryState.DONE:
                    return
        finally:
            self.release_connection()

    def _step(self) -> DeliveryState:
        if self._cursor.has_next():
            readable, writable = self.connection.availability(self.poll_timeout)
            if readable and self._read_error():
                self.reset_connection()
            elif writable:
                self._write_message()
                self._cursor.advance()
            return DeliveryState.RUNNING

        self.state = DeliveryState.DRAINING
        if self._read_final_error():
            self.reset_connection()
        return DeliveryState.RUNNING if self._cursor.has_next() else DeliveryState.DONE

    def _read_final_error(self) -> Optional[ErrorFrame]:
        if self.connection.readiness(self.final_timeout):
            return self._read_error()
        return None

    def _read_error(self) -> Optional[ErrorFrame]:
        frame = self.connection.read_error_frame()
        if frame is None:
            return None

        logger.warning(
            f"APNs rejected message {frame.message_id}: {frame.description} (status {frame.status})"
        )
        self._invoke("on_apns_error", frame.status, frame.message_id)
        if not self._cursor.rewind_to(frame.message_id):
            logger.warning(f"Message {frame.message_id} is not part of this delivery, not rewinding")
        return frame

    def _write_message(self) -> None:
        msg = self._cursor.peek()
        self.connection.write(msg.to_apns())
        logger.debug(f"Wrote message {msg.message_id}")
        self._invoke("on_write", msg)

    # ---------- exception budget ----------

    def _handle_exception(self, error: Exception) -> ExceptionOutcome:
        if self._connection is not None:
            with suppress(Exception):
                self._read_final_error()

        try:
            self.reset_connection()
        except Exception as reset_error:
            # next iteration reconnects lazily and counts the failure if it recurs
            logger.warning(f"Reconnect after exception failed: {reset_error!r}")

        pending = self._cursor.peek()
        logger.error(f"Delivery exception on message {getattr(pending, 'message_id', None)}: {error!r}")
        self._invoke("on_exception", error, pending)

        self.exceptions.append(error)
        if len(self.exceptions) >= self.exception_limit:
            return ExceptionOutcome.FATAL

        if pending is None:
            return ExceptionOutcome.RETRY

        errors = self.exceptions_per_message.setdefault(self._cursor.position, [])
        errors.append(error)
        if len(errors) >= self.exception_limit_per_message:
            logger.warning(f"Skipping message {pending.message_id} after {len(errors)} exceptions")
            self._invoke("on_message_skip", pending)
            self._cursor.advance()
            return ExceptionOutcome.SKIP

        return ExceptionOutcome.RETRY

    # ---------- connection management ----------

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            if self.connection_pool is not None and not self._checked_out:
                self._connection = self.connection_pool.acquire()
                self._checked_out = True
            else:
                self._connection = Connection(self.connection_config)
        return self._connection

    def reset_connection(self) -> None:
        """Replace the current connection with a fresh one; never returned to the pool."""
        old, self._connection = self._connection, None
        if old is not None:
            old.close()
        logger.info("Resetting gateway connection")
        self._connection = Connection(self.connection_config)

    def release_connection(self) -> None:
        conn, self._connection = self._connection, None
        self._checked_out = False
        if conn is None:
            return
        if self.connection_pool is not None:
            self.connection_pool.release(conn)
        else:
            conn.close()

    # ---------- callbacks ----------

    def _invoke(self, name: str, *args: Any) -> None:
        cb = getattr(self.callbacks, name)
        if cb is not None:
            cb(self, *args)
