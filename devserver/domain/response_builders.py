"""Pure HTTP response builders."""

import json

from devserver.domain.http_types import HttpResponse

STATUS_REASONS = {
    200: "OK",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
}


def status_line(status_code: int) -> str:
    """Format the HTTP/1.1 status line for ``status_code``."""
    return f"HTTP/1.1 {status_code} {STATUS_REASONS[status_code]}"


def not_found_response(body: bytes, close_connection: bool) -> HttpResponse:
    """Return a 404 HTML response with the fallback document as body."""
    return HttpResponse(
        status_line(404), {"Content-Type": "text/html"}, body, close_connection
    )


def server_error_response(error_code: str, close_connection: bool) -> HttpResponse:
    """Return a 500 JSON response exposing only the coarse error code."""
    payload = json.dumps({"code": error_code, "message": "unknown server error"})
    return HttpResponse(
        status_line(500),
        {"Content-Type": "application/json"},
        payload.encode(),
        close_connection,
    )


def forbidden_response(close_connection: bool) -> HttpResponse:
    """Produce a 403 response for paths outside the serving directory."""
    return HttpResponse(status_line(403), {}, b"", close_connection)


def bad_request_response() -> HttpResponse:
    """Produce a 400 response that always closes the connection."""
    return HttpResponse(status_line(400), {}, b"", True)
