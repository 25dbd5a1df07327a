"""
Pydantic data models for the APNs client.

Payload and Message are validated at construction and frozen afterwards;
Message knows how to pack itself into the enhanced binary notification
frame, ErrorFrame decodes the 6-byte error response.
"""

from __future__ import annotations

import json
import struct
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional

from pydantic import BaseModel, Field, validator

from .errors import MessageIdentifierMissing
from .message_id import MAX_MESSAGE_ID, MessageIdAllocator
from .utils import default_expiry, normalize_token, to_timestamp

PAYLOAD_MAX_SIZE = 256
TOKEN_SIZE = 32
ENHANCED_COMMAND = 1
ERROR_FRAME_SIZE = 6

# Native byte order, standard sizes, no padding
_FRAME_HEADER = struct.Struct("=BIi")
_ERROR_FRAME = struct.Struct("=BBI")
# Two length bytes: marker then length, i.e. a big-endian 16-bit value
_ITEM_LENGTH = struct.Struct(">H")

STATUS_DESCRIPTIONS = {
    0: "no errors encountered",
    1: "processing error",
    2: "missing device token",
    3: "missing topic",
    4: "missing payload",
    5: "invalid token size",
    6: "invalid topic size",
    7: "invalid payload size",
    8: "invalid token",
    10: "shutdown",
    255: "unknown",
}


def _dump(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class Payload(BaseModel):
    """JSON body of a notification: the ``aps`` dictionary plus custom keys."""

    aps: Dict[str, Any]
    custom: Dict[str, Any] = {}

    class Config:
        frozen = True

    @validator("custom", always=True)
    def _validate_custom(cls, v, values):
        if "aps" in v:
            raise ValueError("custom keys may not override 'aps'")
        if "aps" in values:
            size = len(_dump({"aps": values["aps"], **v}))
            if size > PAYLOAD_MAX_SIZE:
                raise ValueError(
                    f"Payload generates a JSON string of {size} bytes, "
                    f"max is {PAYLOAD_MAX_SIZE} bytes."
                )
        return v

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payload":
        """Accept either a full body (``{"aps": {...}, ...}``) or a rootless ``aps`` dict."""
        if "aps" in data:
            rest = {k: v for k, v in data.items() if k != "aps"}
            return cls(aps=data["aps"], custom=rest)
        return cls(aps=data)

    def to_bytes(self) -> bytes:
        return _dump({"aps": self.aps, **self.custom})

    def to_json(self) -> str:
        return self.to_bytes().decode("utf-8")

    @property
    def bytesize(self) -> int:
        return len(self.to_bytes())


class Message(BaseModel):
    """One notification addressed to one device."""

    device_token: str
    payload: Payload
    expires_at: int = Field(default_factory=default_expiry)
    message_id: Optional[int] = None

    class Config:
        frozen = True

    @validator("device_token")
    def _validate_token(cls, v):
        token = normalize_token(v)
        try:
            raw = bytes.fromhex(token)
        except ValueError:
            raise ValueError(f"Device token must be a hex string: {v!r}")
        if len(raw) != TOKEN_SIZE:
            raise ValueError(f"Device token must be {TOKEN_SIZE} bytes, got {len(raw)}")
        return token

    @validator("payload", pre=True)
    def _coerce_payload(cls, v):
        if isinstance(v, dict):
            return Payload.from_dict(v)
        return v

    @validator("expires_at", pre=True)
    def _coerce_expiry(cls, v):
        if isinstance(v, datetime):
            return to_timestamp(v)
        return v

    @validator("expires_at")
    def _validate_expiry(cls, v):
        if not (-(1 << 31) <= v < (1 << 31)):
            raise ValueError("expires_at must fit in a signed 32-bit integer")
        return v

    @validator("message_id")
    def _validate_message_id(cls, v):
        if v is not None and not (0 <= v < MAX_MESSAGE_ID):
            raise ValueError(f"message_id must be in [0, {MAX_MESSAGE_ID})")
        return v

    @classmethod
    def create(
        cls,
        device_token: str,
        payload: Any,
        *,
        allocator: MessageIdAllocator,
        expires_at: Any = None,
        message_id: Optional[int] = None,
    ) -> "Message":
        """Build a message, drawing its identifier from ``allocator`` unless one is given."""
        data: Dict[str, Any] = {
            "device_token": device_token,
            "payload": payload,
            "message_id": message_id if message_id is not None else allocator.next(),
        }
        if expires_at is not None:
            data["expires_at"] = expires_at
        return cls(**data)

    @property
    def identifier(self) -> Optional[int]:
        return self.message_id

    def to_apns(self) -> bytes:
        """Pack into the enhanced (command 1) binary frame."""
        if self.message_id is None:
            raise MessageIdentifierMissing(
                f"message for token {self.device_token[:8]}... has no message_id"
            )
        body = self.payload.to_bytes()
        return b"".join(
            [
                _FRAME_HEADER.pack(ENHANCED_COMMAND, self.message_id, self.expires_at),
                _ITEM_LENGTH.pack(TOKEN_SIZE),
                bytes.fromhex(self.device_token),
                _ITEM_LENGTH.pack(len(body)),
                body,
            ]
        )


class ErrorFrame(NamedTuple):
    """Error response: the first message the service rejected."""

    command: int
    status: int
    message_id: int

    @classmethod
    def decode(cls, data: bytes) -> "ErrorFrame":
        if len(data) != ERROR_FRAME_SIZE:
            raise ValueError(f"error frame must be {ERROR_FRAME_SIZE} bytes, got {len(data)}")
        return cls(*_ERROR_FRAME.unpack(data))

    def encode(self) -> bytes:
        return _ERROR_FRAME.pack(self.command, self.status, self.message_id)

    @property
    def description(self) -> str:
        return STATUS_DESCRIPTIONS.get(self.status, f"status {self.status}")
