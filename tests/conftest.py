"""
Pytest configuration and fixtures for apns-client.

Provides sample messages and a scripted fake gateway that stands in for
apns_client.connection.Connection inside the delivery engine.
"""

from typing import List, Optional, Tuple
from unittest.mock import patch

import pytest

from apns_client.errors import ConnectError, ConnectionIOError
from apns_client.models import Message, Payload

TOKENS = [
    "1b7b8de5888bb742ba744a2a5c8e52c6481d1deeecc283e830533b7c6bf1d099",
    "2a5f4de5888bb742ba744a2a5c8e52c6481d1deeecc283e830533b7c6bf1d044",
    "3a5f4de5888bb743ba744a2a5c8e52c6481d1deeecc283e830533b7c6bf1d044",
]


@pytest.fixture
def connection_config():
    return {"host": "gateway.push.apple.com", "cert": "/etc/apns/cert.pem"}


@pytest.fixture
def messages() -> List[Message]:
    """Three messages with ids 1, 2, 3."""
    return [
        Message(
            device_token=token,
            payload=Payload(aps={"alert": "New version of the app is out!", "badge": i + 1}),
            message_id=i + 1,
        )
        for i, token in enumerate(TOKENS)
    ]


class FakeConnection:
    """Connection double whose behaviour comes from the shared FakeGateway script."""

    def __init__(self, gateway: "FakeGateway", config):
        self.gateway = gateway
        self.config = config
        self.closed = False

    def availability(self, timeout):
        self.gateway.availability_calls += 1
        self.gateway.timeouts.append(("availability", timeout))
        if self.gateway.availability:
            return self.gateway.availability.pop(0)
        return self.gateway.default_availability

    def readiness(self, timeout):
        self.gateway.readiness_calls += 1
        self.gateway.timeouts.append(("readiness", timeout))
        if self.gateway.readiness:
            return self.gateway.readiness.pop(0)
        return None

    def read_error_frame(self):
        if self.gateway.errors:
            frame = self.gateway.errors.pop(0)
            if isinstance(frame, Exception):
                raise frame
            return frame
        return None

    def write(self, data: bytes):
        if self.gateway.fail_writes:
            raise ConnectionIOError("broken pipe")
        self.gateway.writes.append(data)
        self.gateway.events.append(("write", data))

    def close(self):
        self.closed = True


class FakeGateway:
    """Script for every FakeConnection created during one test.

    availability / readiness / errors are consumed in order across
    connections; once empty they fall back to "writable only", "not
    readable" and "no frame".
    """

    def __init__(self):
        self.availability: List[Tuple[Optional[bool], Optional[bool]]] = []
        self.default_availability: Tuple[Optional[bool], Optional[bool]] = (False, True)
        self.readiness: List[Optional[bool]] = []
        self.errors: List[object] = []  # ErrorFrame, None or an exception to raise
        self.fail_writes = False
        self.connect_failures = 0

        self.connections: List[FakeConnection] = []
        self.writes: List[bytes] = []
        self.events: List[tuple] = []
        self.availability_calls = 0
        self.readiness_calls = 0
        self.timeouts: List[tuple] = []

    def connect(self, config):
        if self.connect_failures > 0:
            self.connect_failures -= 1
            raise ConnectError("connection refused")
        conn = FakeConnection(self, config)
        self.connections.append(conn)
        self.events.append(("connect", len(self.connections)))
        return conn

    def written(self, messages: List[Message]) -> List[int]:
        """Map raw writes back to message ids."""
        by_frame = {m.to_apns(): m.message_id for m in messages}
        return [by_frame[w] for w in self.writes]


@pytest.fixture
def gateway():
    gw = FakeGateway()
    with patch("apns_client.delivery.Connection", side_effect=gw.connect):
        yield gw
