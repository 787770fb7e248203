"""Listening socket and server lifetime."""

import asyncio
import functools
import logging
import signal
import ssl
from typing import Optional

from devserver.bootstrap.config import ServerConfig
from devserver.domain.correlation_id import CorrelationLoggerAdapter
from devserver.lifecycle.watchdog import IDLE_EXIT_CODE, IdleWatchdog
from devserver.pipeline.io import MAX_HEADER_BYTES
from devserver.transport.context import ServerContext
from devserver.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("devserver.transport.accept"), {}
)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def shutdown_handler(signum: int) -> None:
        ACCEPT_LOGGER.info(
            "Received shutdown signal", extra={"event": "shutdown_signal", "signal": signum}
        )
        stop.set()

    for signum in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(signum, shutdown_handler, signum)
        except (NotImplementedError, RuntimeError):
            ACCEPT_LOGGER.debug(
                "Signal handlers unavailable on this platform",
                extra={"event": "signal_handler_skipped", "signal": signum},
            )


async def start_listener(
    context: ServerContext, tls_context: Optional[ssl.SSLContext] = None
) -> asyncio.Server:
    """Bind the listening socket, wrapping connections in TLS when given."""
    config = context.config
    server = await asyncio.start_server(
        functools.partial(handle_client, context=context),
        host=config.listen_address,
        port=config.listen_port,
        ssl=tls_context,
        limit=MAX_HEADER_BYTES,
    )
    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "host": config.listen_address,
            "port": config.listen_port,
            "tls": tls_context is not None,
        },
    )
    return server


async def run_server(
    config: ServerConfig,
    tls_context: Optional[ssl.SSLContext] = None,
    watchdog: Optional[IdleWatchdog] = None,
) -> int:
    """Serve until a shutdown signal or the idle watchdog fires.

    Returns the process exit code: 0 after a signal, 2 after an idle timeout.
    """
    watchdog = watchdog or IdleWatchdog(config.idle_timeout_ms)
    context = ServerContext(config=config, watchdog=watchdog)
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    server = await start_listener(context, tls_context)
    watchdog.reset()

    waiters = [
        asyncio.create_task(watchdog.wait_fired()),
        asyncio.create_task(stop.wait()),
    ]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()
        watchdog.cancel()
        server.close()

    exit_code = IDLE_EXIT_CODE if watchdog.has_fired() else 0
    ACCEPT_LOGGER.info(
        "Server shutdown complete",
        extra={"event": "server_stopped", "status_code": exit_code},
    )
    return exit_code
