"""Connection handler coroutine, one task per client connection."""

import asyncio
import logging
from typing import Optional

from devserver.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from devserver.domain.http_types import IncomingRequest
from devserver.domain.response_builders import bad_request_response
from devserver.handlers.file_handler import serve_file
from devserver.pipeline.io import receive_request, send_response
from devserver.pipeline.streaming import TransportWriteError
from devserver.transport.context import ServerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("devserver.transport.worker"), {}
)


def _format_peer(peername) -> str:
    if isinstance(peername, tuple) and len(peername) >= 2:
        return f"{peername[0]}:{peername[1]}"
    return "-"


async def _read_request(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    context: ServerContext,
    client: str,
) -> tuple[Optional[IncomingRequest], bool]:
    """Read the next request, answering malformed heads with 400."""
    try:
        request = await asyncio.wait_for(
            receive_request(reader, client), context.config.socket_timeout
        )
    except asyncio.TimeoutError:
        WORKER_LOGGER.info(
            "Connection idle, closing",
            extra={"event": "connection_timeout", "client": client},
        )
        return None, True
    except ValueError as error:
        context.watchdog.reset()
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={
                "event": "malformed_request",
                "client": client,
                "error_type": type(error).__name__,
            },
        )
        await send_response(writer, bad_request_response())
        return None, True

    if request is None:
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Client disconnected",
                extra={"event": "client_disconnected", "client": client},
            )
        return None, True

    context.watchdog.reset()
    return request, False


async def _close_writer(writer: asyncio.StreamWriter, client: str) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except (ConnectionError, OSError):
        pass
    if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        WORKER_LOGGER.debug(
            "Socket closed", extra={"event": "socket_closed", "client": client}
        )


async def handle_client(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    context: ServerContext,
) -> None:
    """Serve requests on one connection until it is closed."""
    client = _format_peer(writer.get_extra_info("peername"))

    try:
        while True:
            set_correlation_id(generate_correlation_id())
            request, should_stop = await _read_request(reader, writer, context, client)
            if should_stop or request is None:
                break

            close_connection = await serve_file(request, context, writer)

            if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
                WORKER_LOGGER.debug(
                    "Request processing complete",
                    extra={"event": "request_complete", "client": client},
                )
            clear_correlation_id()
            if close_connection:
                break
    except TransportWriteError:
        WORKER_LOGGER.info(
            "Client connection lost during response",
            extra={"event": "response_aborted", "client": client},
        )
    except (ConnectionError, TimeoutError, OSError, UnicodeDecodeError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
    finally:
        clear_correlation_id()
        await _close_writer(writer, client)
