"""Request path resolution confined to the serving directory."""

import errno
from pathlib import Path
from typing import Mapping, Optional

INDEX_DOCUMENT = "index.html"


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the configured sandbox."""


def apply_index_defaults(url_path: str, aliases: Optional[Mapping[str, str]] = None) -> str:
    """Map a URL path onto the document path it stands for.

    Directory paths get ``index.html`` appended, the empty path becomes
    ``/index.html`` and exact alias matches are substituted.
    """
    if url_path.endswith("/"):
        return url_path + INDEX_DOCUMENT
    if url_path == "":
        return "/" + INDEX_DOCUMENT
    if aliases and url_path in aliases:
        return aliases[url_path]
    return url_path


def resolve_sandbox_path(directory: Path, user_path: str) -> Path:
    """Resolve a user-supplied path inside the configured sandbox."""
    if "\x00" in user_path:
        raise ForbiddenPath(user_path)

    directory_root = Path(directory).resolve()
    relative_part = user_path.lstrip("/")
    if ".." in Path(relative_part).parts:
        raise ForbiddenPath(user_path)

    try:
        target = (directory_root / relative_part).resolve()
    except RuntimeError as exc:
        raise OSError(errno.ELOOP, "Symlink loop", user_path) from exc
    if not (target == directory_root or directory_root in target.parents):
        raise ForbiddenPath(user_path)

    return target


def resolve_request_path(
    root_directory: Path, url_path: str, aliases: Optional[Mapping[str, str]] = None
) -> Path:
    """Return the absolute file to serve for ``url_path`` under ``root_directory``."""
    return resolve_sandbox_path(root_directory, apply_index_defaults(url_path, aliases))
