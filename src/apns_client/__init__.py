"""
APNs Client Library

Delivers push notifications over the legacy binary Apple Push Notification
service interface, resending after asynchronous error responses.

Usage:
    from apns_client import Delivery, Message, MessageIdAllocator, Payload

    ids = MessageIdAllocator()
    messages = [
        Message.create(token, Payload(aps={"alert": "Hello", "badge": 1}), allocator=ids)
        for token in tokens
    ]
    Delivery(
        messages,
        connection_config={"host": "gateway.push.apple.com", "cert": "/etc/apns.pem"},
    ).process()
"""

from .connection import Connection, ConnectionConfig, APNS_PORT
from .cursor import MessageCursor
from .delivery import Delivery, DeliveryCallbacks, DeliveryState
from .errors import (
    APNSOperationalError,
    ConfigError,
    ConnectError,
    ConnectionIOError,
    ExceptionLimitReached,
    MessageIdentifierMissing,
)
from .message_id import MessageIdAllocator
from .models import ErrorFrame, Message, Payload, PAYLOAD_MAX_SIZE
from .pool import ConnectionPool, ConnectionPoolProtocol

__version__ = "1.0.0"
__all__ = [
    "APNS_PORT",
    "APNSOperationalError",
    "ConfigError",
    "ConnectError",
    "Connection",
    "ConnectionConfig",
    "ConnectionIOError",
    "ConnectionPool",
    "ConnectionPoolProtocol",
    "Delivery",
    "DeliveryCallbacks",
    "DeliveryState",
    "ErrorFrame",
    "ExceptionLimitReached",
    "Message",
    "MessageCursor",
    "MessageIdAllocator",
    "MessageIdentifierMissing",
    "PAYLOAD_MAX_SIZE",
    "Payload",
]
