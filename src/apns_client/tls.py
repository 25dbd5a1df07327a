"""
TLS context construction for the APNs gateway.

The provider certificate and its private key come as one PEM bundle, given
either as a file path or as the PEM text itself.
"""

from __future__ import annotations

import os
import ssl
import tempfile
from typing import Optional

from loguru import logger

from .errors import ConfigError

PEM_MARKER = "-----BEGIN"


def _is_pem_text(cert: str) -> bool:
    return PEM_MARKER in cert


def build_ssl_context(
    cert: str, cert_pass: str = "", ca_file: Optional[str] = None
) -> ssl.SSLContext:
    """
    Build a client SSLContext carrying the provider certificate.

    Args:
        cert: Path to a PEM bundle (certificate + key) or the PEM text
        cert_pass: Private key passphrase; empty means none
        ca_file: Optional CA bundle overriding the system trust store

    Raises:
        ConfigError: the certificate or key cannot be loaded
    """
    try:
        ctx = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=ca_file)
    except (OSError, ssl.SSLError) as e:
        raise ConfigError(f"Cannot load CA bundle {ca_file!r}: {e}") from e

    password = cert_pass or None

    if not _is_pem_text(cert):
        try:
            ctx.load_cert_chain(certfile=cert, password=password)
        except (OSError, ssl.SSLError) as e:
            raise ConfigError(f"Cannot load certificate {cert!r}: {e}") from e
        return ctx

    # load_cert_chain only reads from disk
    fd, path = tempfile.mkstemp(prefix="apns-", suffix=".pem")
    try:
        with os.fdopen(fd, "w", encoding="ascii") as fh:
            fh.write(cert)
        ctx.load_cert_chain(certfile=path, password=password)
    except (OSError, ssl.SSLError, UnicodeEncodeError) as e:
        raise ConfigError(f"Cannot load certificate from PEM text: {e}") from e
    finally:
        os.unlink(path)

    logger.debug("Loaded provider certificate from PEM text")
    return ctx
