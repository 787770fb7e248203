"""Full or chunked delivery of file content."""

import asyncio
import logging
from typing import Iterator

from devserver.domain.correlation_id import CorrelationLoggerAdapter
from devserver.domain.response_builders import status_line
from devserver.pipeline.io import encode_head

STREAM_LOGGER = CorrelationLoggerAdapter(logging.getLogger("devserver.streaming"), {})

CRLF = b"\r\n"
LAST_CHUNK = b"0\r\n\r\n"


class TransportWriteError(ConnectionError):
    """Raised when the client connection fails while a response is written."""


def chunk_spans(length: int, chunk_size: int) -> Iterator[tuple[int, int]]:
    """Yield ``(offset, size)`` pairs covering ``length`` bytes in order.

    Every span is ``chunk_size`` long except possibly the last one; no span
    is ever empty.
    """
    if chunk_size < 1:
        raise ValueError("chunk size must be positive")
    for offset in range(0, length, chunk_size):
        yield offset, min(chunk_size, length - offset)


def use_chunked(content_length: int, chunk_threshold: int) -> bool:
    """Chunked transfer is used only for content strictly above the threshold."""
    return content_length > chunk_threshold


def frame_chunk(data: bytes) -> bytes:
    """Wrap ``data`` in chunked transfer-encoding framing."""
    return f"{len(data):X}".encode() + CRLF + data + CRLF


async def _write(writer: asyncio.StreamWriter, data: bytes) -> None:
    writer.write(data)
    await writer.drain()


def _flush_every_write(writer: asyncio.StreamWriter) -> tuple[int, int]:
    """Make ``drain()`` wait until each write has left the buffer.

    Returns the previous ``(low, high)`` limits so they can be restored.
    """
    transport = writer.transport
    previous = transport.get_write_buffer_limits()
    transport.set_write_buffer_limits(high=0)
    return previous


async def send_full(
    writer: asyncio.StreamWriter,
    content: bytes,
    content_type: str,
    close_connection: bool = False,
) -> None:
    """Send ``content`` in one write with ``Content-Length`` framing."""
    headers = {"Content-Type": content_type, "Content-Length": str(len(content))}
    if close_connection:
        headers["Connection"] = "close"
    try:
        await _write(writer, encode_head(status_line(200), headers) + content)
    except (ConnectionError, OSError) as error:
        STREAM_LOGGER.warning(
            "Response write failed",
            extra={"event": "response_write_failed", "error_type": type(error).__name__},
        )
        raise TransportWriteError(str(error)) from error


async def send_chunked(
    writer: asyncio.StreamWriter,
    content: bytes,
    content_type: str,
    chunk_size: int,
    close_connection: bool = False,
) -> int:
    """Send ``content`` as sequential chunks of ``chunk_size`` bytes.

    Each chunk is drained before the next is written. On a failed write the
    remaining chunks are abandoned and :class:`TransportWriteError` is raised.
    Returns the number of data chunks sent.
    """
    headers = {"Content-Type": content_type, "Transfer-Encoding": "chunked"}
    if close_connection:
        headers["Connection"] = "close"

    STREAM_LOGGER.info(
        "Chunked transfer started",
        extra={
            "event": "chunked_transfer_started",
            "bytes_out": len(content),
            "chunk_size": chunk_size,
        },
    )
    view = memoryview(content)
    sent = 0
    offset = 0
    low, high = _flush_every_write(writer)
    try:
        await _write(writer, encode_head(status_line(200), headers))
        for offset, size in chunk_spans(len(content), chunk_size):
            await _write(writer, frame_chunk(bytes(view[offset : offset + size])))
            sent += 1
            if STREAM_LOGGER.logger.isEnabledFor(logging.DEBUG):
                STREAM_LOGGER.debug(
                    "Chunk sent",
                    extra={"event": "chunk_sent", "offset": offset, "chunk_size": size},
                )
        await _write(writer, LAST_CHUNK)
    except (ConnectionError, OSError) as error:
        STREAM_LOGGER.warning(
            "Chunked transfer aborted",
            extra={
                "event": "chunked_transfer_aborted",
                "offset": offset,
                "chunks": sent,
                "error_type": type(error).__name__,
            },
        )
        raise TransportWriteError(str(error)) from error
    finally:
        writer.transport.set_write_buffer_limits(high=high, low=low)

    if STREAM_LOGGER.logger.isEnabledFor(logging.DEBUG):
        STREAM_LOGGER.debug(
            "Chunked transfer complete",
            extra={"event": "chunked_transfer_complete", "chunks": sent},
        )
    return sent


async def stream_content(
    writer: asyncio.StreamWriter,
    content: bytes,
    content_type: str,
    chunk_threshold: int,
    chunk_size: int,
    close_connection: bool = False,
) -> bool:
    """Deliver ``content`` with a 200 status; returns True when chunked."""
    # pylint: disable=too-many-arguments, too-many-positional-arguments
    if use_chunked(len(content), chunk_threshold):
        await send_chunked(writer, content, content_type, chunk_size, close_connection)
        return True
    await send_full(writer, content, content_type, close_connection)
    return False
