"""Mapping of file read failures onto HTTP responses."""

import asyncio
import errno
import logging
from pathlib import Path

from devserver.domain.correlation_id import CorrelationLoggerAdapter
from devserver.domain.http_types import HttpResponse
from devserver.domain.response_builders import (
    not_found_response,
    server_error_response,
)

ERROR_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("devserver.handlers.error"), {}
)

NOT_FOUND_ERRORS = (FileNotFoundError, NotADirectoryError)


def error_code(error: OSError) -> str:
    """Return the symbolic errno name such as ``EACCES``."""
    if error.errno is not None and error.errno in errno.errorcode:
        return errno.errorcode[error.errno]
    return "EUNKNOWN"


def is_not_found(error: OSError) -> bool:
    """True when ``error`` means the requested file does not exist."""
    return isinstance(error, NOT_FOUND_ERRORS)


async def read_fallback_document(fallback_path: Path) -> bytes:
    """Read the 404 document, returning an empty body when it is unreadable."""
    try:
        return await asyncio.to_thread(fallback_path.read_bytes)
    except OSError as error:
        ERROR_LOGGER.debug(
            "Fallback document unavailable",
            extra={
                "event": "fallback_unavailable",
                "path": fallback_path.as_posix(),
                "errno": error_code(error),
            },
        )
        return b""


async def error_response(
    error: OSError, fallback_path: Path, close_connection: bool = False
) -> HttpResponse:
    """Build the 404 or 500 response for a failed file read."""
    if is_not_found(error):
        ERROR_LOGGER.info(
            "File not found",
            extra={
                "event": "file_not_found",
                "path": str(error.filename),
                "errno": error_code(error),
            },
        )
        body = await read_fallback_document(fallback_path)
        return not_found_response(body, close_connection)

    code = error_code(error)
    ERROR_LOGGER.error(
        "File read failed",
        extra={
            "event": "file_read_failed",
            "path": str(error.filename),
            "errno": code,
            "error_type": type(error).__name__,
        },
        exc_info=error,
    )
    return server_error_response(code, close_connection)
