"""Content-type resolution from request headers and file extensions."""

from pathlib import PurePath
from typing import Iterable, Optional, Union

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    ".html": "text/html",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".cjs": "text/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".woff": "font/woff",
    ".ttf": "font/ttf",
    ".eot": "application/vnd.ms-fontobject",
    ".otf": "font/otf",
    ".txt": "text/plain",
    ".uml": "text/plain; charset=utf-8",
    ".wasm": "application/wasm",
}


def content_type_override(header_pairs: Iterable[tuple[str, str]]) -> Optional[str]:
    """Return the value of the first ``content-type`` pair, if any."""
    for name, value in header_pairs:
        if name.lower() == "content-type":
            return value
    return None


def content_type_for_extension(file_path: Union[str, PurePath, None]) -> str:
    """Look up the lowercased extension of ``file_path`` in :data:`MIME_TYPES`."""
    if not file_path:
        return DEFAULT_MIME_TYPE
    suffix = PurePath(file_path).suffix.lower()
    return MIME_TYPES.get(suffix, DEFAULT_MIME_TYPE)


def resolve_content_type(
    header_pairs: Iterable[tuple[str, str]], file_path: Union[str, PurePath, None]
) -> str:
    """Pick the response content type.

    An explicit ``content-type`` request header wins verbatim; otherwise the
    extension table decides, falling back to ``application/octet-stream``.
    """
    return content_type_override(header_pairs) or content_type_for_extension(file_path)
