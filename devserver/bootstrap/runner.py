"""Process entry point."""

import asyncio
import logging
import sys
from typing import Optional, Sequence

from devserver.bootstrap.config import USAGE_EXIT_CODE, ServerConfig, load_config
from devserver.bootstrap.logging_setup import configure_logging
from devserver.bootstrap.tls import TLSMaterialError, create_tls_context
from devserver.domain.correlation_id import CorrelationLoggerAdapter
from devserver.transport.accept_loop import run_server

RUNNER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("devserver.runner"), {})


def _log_startup(config: ServerConfig) -> None:
    if not config.secure:
        RUNNER_LOGGER.warning("Using INSECURE http", extra={"event": "insecure_mode"})
    RUNNER_LOGGER.info(
        "Server running at %s/",
        config.base_url,
        extra={
            "event": "server_starting",
            "host": config.listen_address,
            "port": config.listen_port,
            "hostname": config.hostname,
            "directory": config.root_directory.as_posix(),
            "cert_folder": config.cert_folder.as_posix(),
            "tls": config.secure,
            "chunk_threshold": config.chunk_threshold,
            "chunk_size": config.chunk_size,
            "delay_ms": config.delay_ms,
        },
    )
    RUNNER_LOGGER.info(
        "Automatically stop server after %s minutes",
        config.idle_timeout_ms / 60_000,
        extra={"event": "idle_timeout_armed", "idle_timeout_ms": config.idle_timeout_ms},
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the development server and return the process exit code."""
    config = load_config(sys.argv[1:] if argv is None else argv)
    configure_logging(config.log_level, config.log_destination)

    tls_context = None
    if config.secure:
        try:
            tls_context = create_tls_context(config.cert_folder)
        except TLSMaterialError as error:
            RUNNER_LOGGER.critical(
                "Cannot start secure server: %s",
                error,
                extra={"event": "tls_unavailable", "cert_folder": config.cert_folder.as_posix()},
            )
            print(f"Error: {error}", file=sys.stderr)
            return USAGE_EXIT_CODE

    _log_startup(config)
    try:
        return asyncio.run(run_server(config, tls_context))
    except OSError as error:
        RUNNER_LOGGER.critical(
            "Cannot bind listening socket",
            extra={
                "event": "bind_failed",
                "host": config.listen_address,
                "port": config.listen_port,
                "error_type": type(error).__name__,
            },
        )
        print(f"Error: {error}", file=sys.stderr)
        return USAGE_EXIT_CODE


def run() -> None:
    """Console-script wrapper exiting with :func:`main`'s status."""
    sys.exit(main())
