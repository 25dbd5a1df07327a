from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import typer
from loguru import logger

from .config import get_settings
from .connection import Connection, ConnectionConfig
from .delivery import Delivery, DeliveryCallbacks
from .errors import ConfigError, ExceptionLimitReached
from .message_id import MessageIdAllocator
from .metrics import instrumented_callbacks
from .models import Message, Payload
from .utils import iter_ndjson, to_timestamp, utc_now

app = typer.Typer(help="apns_client operational CLI")

# ---------------------------
# Common options
# ---------------------------


def host_opt() -> Optional[str]:
    return typer.Option(None, "--host", envvar="APNS_HOST", help="Gateway hostname")


def cert_opt() -> Optional[str]:
    return typer.Option(
        None, "--cert", envvar="APNS_CERT", help="PEM bundle (certificate + key) path"
    )


def cert_pass_opt() -> Optional[str]:
    return typer.Option(
        None, "--cert-pass", envvar="APNS_CERT_PASS", help="Private key passphrase"
    )


def _connection_config(host, cert, cert_pass) -> ConnectionConfig:
    config = get_settings().connection_config(host=host, cert=cert, cert_pass=cert_pass)
    try:
        return config.require()
    except ConfigError as e:
        raise typer.BadParameter(str(e))


@dataclass
class DeliveryReport:
    """Tallies delivery callbacks for the command's JSON output."""

    written: int = 0
    skipped: List[int] = field(default_factory=list)
    exceptions: List[str] = field(default_factory=list)
    apns_errors: List[Dict[str, int]] = field(default_factory=list)

    def callbacks(self) -> DeliveryCallbacks:
        return instrumented_callbacks(
            {
                "on_write": self._on_write,
                "on_message_skip": self._on_skip,
                "on_exception": self._on_exception,
                "on_apns_error": self._on_apns_error,
            }
        )

    def _on_write(self, delivery, message) -> None:
        self.written += 1

    def _on_skip(self, delivery, message) -> None:
        self.skipped.append(message.message_id)

    def _on_exception(self, delivery, error, message) -> None:
        self.exceptions.append(f"{type(error).__name__}: {error}")

    def _on_apns_error(self, delivery, status, message_id) -> None:
        self.apns_errors.append({"status": status, "message_id": message_id})

    def as_dict(self) -> Dict[str, Any]:
        return {
            "written": self.written,
            "skipped": self.skipped,
            "exceptions": self.exceptions,
            "apns_errors": self.apns_errors,
        }


def _deliver(messages: List[Message], config: ConnectionConfig) -> DeliveryReport:
    report = DeliveryReport()
    delivery = Delivery(
        messages,
        connection_config=config,
        callbacks=report.callbacks(),
        **get_settings().delivery_options(),
    )
    try:
        delivery.process()
    except ExceptionLimitReached as e:
        logger.error(f"Gave up after {e.limit} exceptions")
        typer.echo(json.dumps(report.as_dict(), indent=2))
        raise typer.Exit(code=1)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        raise typer.Exit(code=2)
    return report


# ---------------------------
# Commands
# ---------------------------


@app.command("ping")
def ping(host: str = host_opt(), cert: str = cert_opt(), cert_pass: str = cert_pass_opt()):
    """Open and close one gateway connection."""
    conn = Connection(_connection_config(host, cert, cert_pass))
    conn.close()
    logger.success("Gateway connection OK")
    typer.echo(json.dumps({"ok": True}, indent=2))


@app.command("send")
def send(
    device_token: str = typer.Argument(..., help="Device token (hex)"),
    alert: Optional[str] = typer.Option(None, "--alert"),
    badge: Optional[int] = typer.Option(None, "--badge"),
    sound: Optional[str] = typer.Option(None, "--sound"),
    expires_in: int = typer.Option(30 * 24 * 3600, "--expires-in", help="Seconds from now"),
    host: str = host_opt(),
    cert: str = cert_opt(),
    cert_pass: str = cert_pass_opt(),
):
    """Deliver a single notification."""
    aps = {k: v for k, v in (("alert", alert), ("badge", badge), ("sound", sound)) if v is not None}
    if not aps:
        raise typer.BadParameter("at least one of --alert, --badge, --sound is required")

    ids = MessageIdAllocator()
    msg = Message.create(
        device_token,
        Payload(aps=aps),
        allocator=ids,
        expires_at=to_timestamp(utc_now()) + expires_in,
    )
    report = _deliver([msg], _connection_config(host, cert, cert_pass))
    typer.echo(json.dumps(report.as_dict(), indent=2))


@app.command("send-ndjson")
def send_ndjson(
    path: str = typer.Argument(..., help="File path or '-' for stdin (.gz ok)"),
    host: str = host_opt(),
    cert: str = cert_opt(),
    cert_pass: str = cert_pass_opt(),
):
    """Deliver notifications read from NDJSON (device_token, aps, custom, expires_at, message_id)."""
    ids = MessageIdAllocator()
    messages: List[Message] = []
    for obj in iter_ndjson(path):
        messages.append(
            Message.create(
                obj["device_token"],
                Payload(aps=obj["aps"], custom=obj.get("custom") or {}),
                allocator=ids,
                expires_at=obj.get("expires_at"),
                message_id=obj.get("message_id"),
            )
        )
    logger.info(f"Loaded {len(messages)} notifications from {path}")

    report = _deliver(messages, _connection_config(host, cert, cert_pass))
    typer.echo(json.dumps(report.as_dict(), indent=2))


if __name__ == "__main__":
    app()
