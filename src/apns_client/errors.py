"""
Custom exceptions for the APNs client.

Provides structured error handling for connection setup, transport faults
and the delivery engine's exception budget.
"""

from __future__ import annotations

import ssl
from typing import Sequence


class APNSOperationalError(Exception):
    """Base operational error for the APNs client."""

    pass


class ConfigError(APNSOperationalError):
    """Required configuration is missing or credentials cannot be loaded."""

    pass


class ConnectError(APNSOperationalError):
    """TCP connect or TLS handshake failure."""

    pass


class ConnectionIOError(APNSOperationalError):
    """Read or write failure on an established connection."""

    pass


class MessageIdentifierMissing(APNSOperationalError):
    """A message without an identifier cannot be encoded."""

    pass


class ExceptionLimitReached(APNSOperationalError):
    """Raised by Delivery once the run-global exception budget is spent.

    Attributes:
        limit: The configured exception_limit
        exceptions: Every exception caught during the run, in order
    """

    def __init__(self, limit: int, exceptions: Sequence[BaseException]):
        self.limit = limit
        self.exceptions = list(exceptions)
        super().__init__(self._render())

    def _render(self) -> str:
        msg = f"Exception limit ({self.limit}) reached, got these exceptions:\n\n"
        for e in self.exceptions:
            msg += f"{e!r}\n\n"
        return msg


def map_socket_error(e: Exception, during_connect: bool = False) -> APNSOperationalError:
    if isinstance(e, APNSOperationalError):
        return e
    if during_connect:
        if isinstance(e, ssl.SSLError):
            return ConnectError(f"TLS handshake failed: {e}")
        return ConnectError(f"TCP connect failed: {e}")
    if isinstance(e, ssl.SSLError):
        return ConnectionIOError(f"TLS error: {e}")
    if isinstance(e, TimeoutError):
        return ConnectionIOError(f"socket timed out: {e}")
    return ConnectionIOError(str(e))
