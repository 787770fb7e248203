"""TLS material loading."""

import logging
import ssl
from pathlib import Path

from devserver.domain.correlation_id import CorrelationLoggerAdapter

TLS_LOGGER = CorrelationLoggerAdapter(logging.getLogger("devserver.bootstrap.tls"), {})

PRIVATE_KEY_FILE = "privkey.pem"
CERT_CHAIN_FILES = ("fullchain.pem", "cert.pem")


class TLSMaterialError(Exception):
    """Raised when the key or certificate for secure mode cannot be loaded."""


def find_cert_chain(cert_folder: Path) -> Path:
    """Return the certificate chain file, preferring ``fullchain.pem``."""
    for name in CERT_CHAIN_FILES:
        candidate = cert_folder / name
        if candidate.is_file():
            return candidate
    raise TLSMaterialError(
        f"no certificate found in {cert_folder} (tried {', '.join(CERT_CHAIN_FILES)})"
    )


def create_tls_context(cert_folder: Path) -> ssl.SSLContext:
    """Build a server-side TLS context from the PEM files in ``cert_folder``."""
    key_file = cert_folder / PRIVATE_KEY_FILE
    if not key_file.is_file():
        raise TLSMaterialError(f"private key not found: {key_file}")
    chain_file = find_cert_chain(cert_folder)

    tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    try:
        tls_context.load_cert_chain(chain_file, key_file)
    except (ssl.SSLError, OSError) as error:
        TLS_LOGGER.critical(
            "Failed to load TLS certificates",
            extra={
                "event": "tls_load_failed",
                "cert_folder": cert_folder.as_posix(),
                "error_type": type(error).__name__,
            },
        )
        raise TLSMaterialError(f"cannot load TLS material from {cert_folder}") from error

    TLS_LOGGER.info(
        "TLS material loaded",
        extra={"event": "tls_loaded", "path": chain_file.as_posix()},
    )
    return tls_context
