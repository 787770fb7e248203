"""HTTP input/output over asyncio streams."""

import asyncio
import logging
import urllib.parse
from typing import Optional, Sequence, TypeVar

from devserver.domain.correlation_id import CorrelationLoggerAdapter
from devserver.domain.http_types import HttpResponse, IncomingRequest

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("devserver.io"), {})

HEADER_DELIMITER = b"\r\n\r\n"
MAX_HEADER_BYTES = 64 * 1024
MAX_DISCARDED_BODY_BYTES = 16 * 1024 * 1024
SUPPORTED_VERSIONS = {"HTTP/1.0", "HTTP/1.1"}

T = TypeVar("T")


def group_items(items: Sequence[T], size: int = 2) -> list[tuple[T, ...]]:
    """Group a flat sequence into consecutive tuples of ``size`` items.

    ``[1, 2, 3, 4, 5]`` grouped by 2 gives ``[(1, 2), (3, 4), (5,)]``.
    """
    if size < 1:
        raise ValueError("group size must be positive")
    return [tuple(items[index : index + size]) for index in range(0, len(items), size)]


def flatten_header_lines(lines: Sequence[str]) -> list[str]:
    """Turn raw header lines into ``[name, value, name, value, ...]``."""
    flat: list[str] = []
    for line in lines:
        if ":" not in line:
            continue
        name, value = line.split(":", 1)
        name = name.strip()
        if not name:
            continue
        flat.extend((name, value.strip()))
    return flat


def parse_header_pairs(lines: Sequence[str]) -> tuple[tuple[str, str], ...]:
    """Convert raw header lines into ordered ``(name, value)`` pairs."""
    return tuple((name, value) for name, value in group_items(flatten_header_lines(lines)))


def parse_request_line(request_line: str) -> tuple[str, str, str]:
    """Split the request line into method, target and HTTP version."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if not method or not target:
        raise ValueError("Invalid request line")
    if version not in SUPPORTED_VERSIONS:
        raise ValueError(f"Unsupported HTTP version: {version}")
    return method, target, version


def target_path(target: str, base_url: str) -> str:
    """Resolve a request target against ``base_url`` and return its decoded path."""
    absolute = urllib.parse.urljoin(base_url + "/", target)
    return urllib.parse.unquote(urllib.parse.urlsplit(absolute).path)


def determine_content_length(request: IncomingRequest) -> int:
    """Return the declared body size, validating the header."""
    header_value = request.header("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0 or content_length > MAX_DISCARDED_BODY_BYTES:
        raise ValueError("Unacceptable Content-Length")
    return content_length


async def receive_request(
    reader: asyncio.StreamReader, remote_address: str = "-"
) -> Optional[IncomingRequest]:
    """Read one request head from ``reader``.

    Returns ``None`` when the client closed the connection before sending a
    complete head. Malformed heads raise :class:`ValueError`. Any request body
    is read and discarded so the next request on the connection starts at a
    message boundary.
    """
    try:
        head = await reader.readuntil(HEADER_DELIMITER)
    except asyncio.IncompleteReadError:
        return None
    except asyncio.LimitOverrunError as exc:
        raise ValueError("Request head too large") from exc

    header_lines = head[: -len(HEADER_DELIMITER)].decode("latin-1").split("\r\n")
    method, target, version = parse_request_line(header_lines[0])
    request = IncomingRequest(
        method=method,
        url=target,
        header_pairs=parse_header_pairs(header_lines[1:]),
        http_version=version,
        remote_address=remote_address,
    )

    content_length = determine_content_length(request)
    if content_length:
        try:
            await reader.readexactly(content_length)
        except asyncio.IncompleteReadError:
            return None

    if IO_LOGGER.logger.isEnabledFor(logging.DEBUG):
        IO_LOGGER.debug(
            "Parsed request",
            extra={"event": "request_parsed", "method": method, "url": target},
        )
    return request


def encode_head(status_line: str, headers: dict[str, str]) -> bytes:
    """Serialize a status line and headers, including the blank line."""
    header_lines = [status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    return ("\r\n".join(header_lines) + "\r\n\r\n").encode("latin-1")


async def send_response(writer: asyncio.StreamWriter, response: HttpResponse) -> None:
    """Serialize and send a full-body response."""
    headers = dict(response.headers)
    headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    writer.write(encode_head(response.status_line, headers) + response.body)
    await writer.drain()
    if IO_LOGGER.logger.isEnabledFor(logging.DEBUG):
        IO_LOGGER.debug(
            "Sent response",
            extra={
                "event": "response_sent",
                "status_code": response.status_code,
                "bytes_out": len(response.body),
            },
        )
