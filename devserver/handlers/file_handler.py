"""Static file serving for one request."""

import asyncio
import logging
import time

from devserver.domain.correlation_id import CorrelationLoggerAdapter
from devserver.domain.http_types import IncomingRequest, ResolvedTarget, should_close
from devserver.domain.mime import resolve_content_type
from devserver.domain.response_builders import bad_request_response, forbidden_response
from devserver.domain.sandbox import ForbiddenPath, resolve_request_path
from devserver.handlers.error_handler import error_response
from devserver.pipeline.io import send_response, target_path
from devserver.pipeline.streaming import stream_content
from devserver.transport.context import ServerContext

FILE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("devserver.handlers.file"), {}
)


def resolve_target(request: IncomingRequest, context: ServerContext) -> ResolvedTarget:
    """Map the request URL onto a file under the serving directory."""
    config = context.config
    url_path = target_path(request.url, config.base_url)
    file_path = resolve_request_path(config.root_directory, url_path, config.aliases)
    content_type = resolve_content_type(request.header_pairs, file_path)
    return ResolvedTarget(file_path, content_type)


async def apply_delay(delay_ms: int) -> None:
    """Suspend the current request only, simulating a slow network."""
    if delay_ms <= 0:
        return
    FILE_LOGGER.warning(
        "Inserting response delay",
        extra={"event": "response_delayed", "delay_ms": delay_ms},
    )
    await asyncio.sleep(delay_ms / 1000)


async def serve_file(
    request: IncomingRequest, context: ServerContext, writer: asyncio.StreamWriter
) -> bool:
    """Answer ``request`` from disk.

    Returns True when the connection must be closed afterwards.
    """
    config = context.config
    close_connection = should_close(request)
    started = time.perf_counter()

    try:
        target = resolve_target(request, context)
    except ForbiddenPath:
        FILE_LOGGER.warning(
            "Forbidden path access blocked",
            extra={
                "event": "forbidden_path",
                "client": request.remote_address,
                "url": request.url,
            },
        )
        await send_response(writer, forbidden_response(close_connection))
        return close_connection
    except ValueError as error:
        FILE_LOGGER.warning(
            "Unparseable request target",
            extra={
                "event": "malformed_target",
                "client": request.remote_address,
                "url": request.url,
                "error_type": type(error).__name__,
            },
        )
        await send_response(writer, bad_request_response())
        return True
    except OSError as error:
        response = await error_response(
            error, config.fallback_document, close_connection
        )
        await send_response(writer, response)
        return close_connection

    FILE_LOGGER.info(
        "Request received",
        extra={
            "event": "request_received",
            "client": request.remote_address,
            "method": request.method,
            "http_version": request.http_version,
            "url": request.url,
            "path": target.file_path.as_posix(),
            "content_type": target.content_type,
        },
    )

    await apply_delay(config.delay_ms)

    try:
        content = await asyncio.to_thread(target.file_path.read_bytes)
    except OSError as error:
        response = await error_response(
            error, config.fallback_document, close_connection
        )
        await send_response(writer, response)
        return close_connection

    chunked = await stream_content(
        writer,
        content,
        target.content_type,
        config.chunk_threshold,
        config.chunk_size,
        close_connection,
    )
    FILE_LOGGER.info(
        "File served",
        extra={
            "event": "file_served",
            "status_code": 200,
            "path": target.file_path.as_posix(),
            "bytes_out": len(content),
            "chunked": chunked,
            "duration_ms": round((time.perf_counter() - started) * 1000, 3),
        },
    )
    return close_connection
