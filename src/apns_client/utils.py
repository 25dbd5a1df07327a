"""
Utility functions for the APNs client.

Includes time helpers, device token normalization and NDJSON reading.
"""

import gzip
import io
import json
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, Union

DEFAULT_EXPIRY = timedelta(days=30)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def to_timestamp(value: Union[int, float, datetime]) -> int:
    """Convert a datetime (naive means UTC) or number into integer unix seconds."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(value)


def default_expiry() -> int:
    """Expiry used when a message does not set one: now + 30 days."""
    return to_timestamp(utc_now() + DEFAULT_EXPIRY)


def normalize_token(token: str) -> str:
    """Strip the spaces and angle brackets devices often report tokens with."""
    return "".join(ch for ch in token if ch not in " <>\t\n").lower()


def iter_ndjson(path: str) -> Iterator[Dict[str, Any]]:
    """
    Yield one dict per non-blank line of an NDJSON source.

    Args:
        path: File path, ``.gz`` file path, or ``-`` for stdin

    Raises:
        ValueError: a line is not a JSON object
    """
    if path == "-":
        stream = io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8")
        close = False
    elif path.endswith(".gz"):
        stream = gzip.open(path, "rt", encoding="utf-8")
        close = True
    else:
        stream = open(path, "r", encoding="utf-8")
        close = True

    try:
        for lineno, line in enumerate(stream, start=1):
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)
            if not isinstance(obj, dict):
                raise ValueError(f"line {lineno}: expected a JSON object, got {type(obj).__name__}")
            yield obj
    finally:
        if close:
            stream.close()
