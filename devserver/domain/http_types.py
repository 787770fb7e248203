"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

HeaderPairs = tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class IncomingRequest:
    """A parsed request head as received from the client."""

    method: str
    url: str
    header_pairs: HeaderPairs
    http_version: str
    remote_address: str = "-"

    def header(self, name: str) -> Optional[str]:
        """Return the first value of ``name``, matched case-insensitively."""
        wanted = name.lower()
        for header_name, value in self.header_pairs:
            if header_name.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class ResolvedTarget:
    """Filesystem path and content type derived from a request."""

    file_path: Path
    content_type: str


@dataclass
class HttpResponse:
    """A response whose whole body is known upfront."""

    status_line: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    close_connection: bool = False

    @property
    def status_code(self) -> int:
        """Numeric status parsed from the status line."""
        return int(self.status_line.split(" ", 2)[1])


def should_close(request: IncomingRequest) -> bool:
    """Determine whether the connection should be closed after responding."""
    connection = (request.header("connection") or "").lower()
    if request.http_version == "HTTP/1.0":
        return connection != "keep-alive"
    return connection == "close"
