"""Unit tests for serving one request from the serving directory."""

import asyncio
import json
import time
from pathlib import Path

import pytest

from devserver.bootstrap.config import ServerConfig
from devserver.domain.http_types import IncomingRequest
from devserver.handlers.file_handler import resolve_target, serve_file
from devserver.lifecycle.watchdog import IdleWatchdog
from devserver.transport.context import ServerContext
from tests.utils.http import parse_http_response
from tests.utils.streams import RecordingWriter


@pytest.fixture(name="site")
def _site(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_text("<h1>home</h1>")
    (root / "page.html").write_text("<p>page</p>")
    (root / "app.js").write_text("console.log(1);")
    (root / "docs").mkdir()
    (root / "blob.bin").write_bytes(b"x" * 300)
    (tmp_path / "404.html").write_text("<h1>missing</h1>")
    return root


def _context(site: Path, **overrides) -> ServerContext:
    settings = {
        "root_directory": site,
        "secure": False,
        "fallback_document": site.parent / "404.html",
    }
    settings.update(overrides)
    return ServerContext(config=ServerConfig(**settings), watchdog=IdleWatchdog(60_000))


def _get(url: str, *headers: tuple[str, str], version: str = "HTTP/1.1") -> IncomingRequest:
    return IncomingRequest("GET", url, tuple(headers), version, "127.0.0.1:50000")


def _serve(request: IncomingRequest, context: ServerContext):
    writer = RecordingWriter()
    close = asyncio.run(serve_file(request, context, writer))
    return parse_http_response(writer.data), close


def test_root_serves_index_as_html(site: Path) -> None:
    """/ is served from index.html with its extension's type."""
    response, close = _serve(_get("/"), _context(site))

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/html"
    assert response.body == b"<h1>home</h1>"
    assert close is False


def test_resolve_target_picks_type_from_extension(site: Path) -> None:
    """The resolved target pairs the file with its content type."""
    target = resolve_target(_get("/app.js"), _context(site))
    assert target.file_path == (site / "app.js").resolve()
    assert target.content_type == "text/javascript"


def test_request_content_type_header_overrides(site: Path) -> None:
    """A client-sent Content-Type replaces the extension lookup."""
    response, _ = _serve(_get("/page.html", ("Content-Type", "text/plain")), _context(site))
    assert response.headers["content-type"] == "text/plain"
    assert response.body == b"<p>page</p>"


def test_missing_file_returns_fallback(site: Path) -> None:
    """A missing file answers 404 with the fallback document."""
    response, _ = _serve(_get("/missing.png"), _context(site))

    assert response.status_code == 404
    assert response.headers["content-type"] == "text/html"
    assert response.body == b"<h1>missing</h1>"


def test_directory_without_alias_is_a_server_error(site: Path) -> None:
    """Reading a directory as a file gives a JSON 500."""
    response, _ = _serve(_get("/docs"), _context(site))

    assert response.status_code == 500
    assert json.loads(response.body) == {"code": "EISDIR", "message": "unknown server error"}


def test_traversal_is_forbidden(site: Path) -> None:
    """Encoded dot segments never read outside the root."""
    (site.parent / "secret.txt").write_text("secret")
    response, _ = _serve(_get("/%2e%2e/secret.txt"), _context(site))

    assert response.status_code == 403
    assert b"secret" not in response.body


def test_large_file_uses_configured_chunking(site: Path) -> None:
    """Content above the threshold is chunked at the configured size."""
    response, _ = _serve(_get("/blob.bin"), _context(site, chunk_threshold=100, chunk_size=128))

    assert response.headers["content-type"] == "application/octet-stream"
    assert response.chunk_sizes == [128, 128, 44, 0]
    assert response.body == b"x" * 300


def test_http10_request_closes_connection(site: Path) -> None:
    """HTTP/1.0 without keep-alive asks the caller to close."""
    response, close = _serve(_get("/page.html", version="HTTP/1.0"), _context(site))
    assert close is True
    assert response.headers["connection"] == "close"


def test_delay_suspends_requests_concurrently(site: Path) -> None:
    """Delayed requests wait in parallel instead of one after another."""
    context = _context(site, delay_ms=200)
    writers = [RecordingWriter() for _ in range(3)]

    async def scenario():
        started = time.perf_counter()
        await asyncio.gather(
            *(serve_file(_get("/page.html"), context, writer) for writer in writers)
        )
        return time.perf_counter() - started

    elapsed = asyncio.run(scenario())

    assert 0.19 <= elapsed < 0.55
    for writer in writers:
        assert parse_http_response(writer.data).status_code == 200


def test_symlink_loop_is_a_server_error(site: Path) -> None:
    """A self-referencing link answers with a JSON 500 carrying ELOOP."""
    (site / "loop").symlink_to(site / "loop")

    response, _ = _serve(_get("/loop"), _context(site))

    assert response.status_code == 500
    assert json.loads(response.body) == {"code": "ELOOP", "message": "unknown server error"}
