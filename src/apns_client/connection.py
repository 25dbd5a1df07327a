from __future__ import annotations

import select
import socket
import ssl
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from loguru import logger

from .errors import ConfigError, ConnectionIOError, map_socket_error
from .models import ERROR_FRAME_SIZE, ErrorFrame
from .tls import build_ssl_context

APNS_PORT = 2195


@dataclass(frozen=True)
class ConnectionConfig:
    host: Optional[str] = None
    cert: Optional[str] = None  # PEM bundle path or PEM text
    cert_pass: str = ""
    port: int = APNS_PORT
    connect_timeout: float = 10.0
    ca_file: Optional[str] = None

    @classmethod
    def coerce(cls, config: Union["ConnectionConfig", Mapping[str, Any]]) -> "ConnectionConfig":
        if isinstance(config, cls):
            return config
        return cls(**dict(config))

    def require(self) -> "ConnectionConfig":
        """Raise ConfigError unless the fields needed to connect are set."""
        if not self.cert:
            raise ConfigError("Missing option 'cert'")
        if not self.host:
            raise ConfigError("Missing option 'host'")
        return self


class Connection:
    """
    One TLS session to the APNs gateway.

    Connecting is eager: the constructor opens TCP, wraps it in TLS and
    completes the handshake, so a Connection object is always live until
    close() is called. Writes block; error-frame reads never do.

    Usage:
        conn = Connection({"host": "gateway.push.apple.com", "cert": "/etc/apns.pem"})
        readable, writable = conn.availability(0.1)
        if writable:
            conn.write(message.to_apns())
        if readable:
            frame = conn.read_error_frame()
        conn.close()
    """

    def __init__(self, config: Union[ConnectionConfig, Mapping[str, Any]]):
        cfg = ConnectionConfig.coerce(config).require()
        self._cfg = cfg
        self._buffer = bytearray()

        ctx = build_ssl_context(cfg.cert, cfg.cert_pass, cfg.ca_file)

        self.tcp_socket: Optional[socket.socket] = None
        ssl_socket: Optional[ssl.SSLSocket] = None
        try:
            self.tcp_socket = socket.create_connection(
                (cfg.host, cfg.port), timeout=cfg.connect_timeout
            )
            ssl_socket = ctx.wrap_socket(
                self.tcp_socket, server_hostname=cfg.host, do_handshake_on_connect=False
            )
            ssl_socket.do_handshake()
            ssl_socket.settimeout(None)
        except OSError as e:
            # wrap_socket detaches the raw socket, the TLS socket owns the fd
            if ssl_socket is not None:
                ssl_socket.close()
            elif self.tcp_socket is not None:
                self.tcp_socket.close()
            raise map_socket_error(e, during_connect=True) from e

        self.ssl_socket = ssl_socket
        logger.info(f"Connected to {cfg.host}:{cfg.port}")

    @classmethod
    def open(cls, config: Union[ConnectionConfig, Mapping[str, Any]]) -> "Connection":
        return cls(config)

    @property
    def config(self) -> ConnectionConfig:
        return self._cfg

    def close(self) -> None:
        self.ssl_socket.close()
        self.tcp_socket.close()
        logger.debug(f"Closed connection to {self._cfg.host}:{self._cfg.port}")

    def write(self, data: bytes) -> None:
        try:
            self.ssl_socket.sendall(data)
        except OSError as e:
            raise map_socket_error(e) from e

    def read_error_frame(self) -> Optional[ErrorFrame]:
        """
        Read the 6-byte error response without blocking.

        Bytes are accumulated across calls; a frame is returned only once
        all six have arrived, then the buffer starts over.

        Returns:
            The decoded ErrorFrame, or None if no complete frame is available yet

        Raises:
            ConnectionIOError: the remote closed the stream or the read failed
        """
        self.ssl_socket.settimeout(0.0)
        try:
            chunk = self.ssl_socket.recv(ERROR_FRAME_SIZE - len(self._buffer))
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError, BlockingIOError):
            return None
        except OSError as e:
            raise map_socket_error(e) from e
        finally:
            self.ssl_socket.settimeout(None)

        if not chunk:
            raise ConnectionIOError("Connection closed by remote")

        self._buffer.extend(chunk)
        if len(self._buffer) < ERROR_FRAME_SIZE:
            return None

        frame = ErrorFrame.decode(bytes(self._buffer))
        self._buffer.clear()
        return frame

    def readiness(self, timeout: float) -> Optional[bool]:
        """True if readable within timeout, None if the poll timed out."""
        # Decrypted bytes already held by the TLS layer are invisible to select()
        if self.ssl_socket.pending() > 0:
            return True
        readable, _, _ = select.select([self.ssl_socket], [], [], timeout)
        if not readable:
            return None
        return True

    def availability(self, timeout: float) -> Tuple[Optional[bool], Optional[bool]]:
        """Poll read and write readiness together; (None, None) on timeout."""
        pending = self.ssl_socket.pending() > 0
        readable, writable, _ = select.select(
            [self.ssl_socket], [self.ssl_socket], [], 0 if pending else timeout
        )
        if pending:
            return True, bool(writable)
        if not readable and not writable:
            return None, None
        return bool(readable), bool(writable)
