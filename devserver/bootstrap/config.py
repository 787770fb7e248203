"""Server configuration and CLI argument parsing."""

import argparse
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, NoReturn, Optional, Sequence


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


USAGE_EXIT_CODE = 1

DEFAULT_LISTEN_ADDRESS = "localhost"
DEFAULT_LISTEN_PORT = 8888
DEFAULT_CHUNK_THRESHOLD = 1_000_000
DEFAULT_CHUNK_SIZE = 1024
DEFAULT_DELAY_MS = 0
DEFAULT_IDLE_TIMEOUT_MS = 3_600_000
DEFAULT_SOCKET_TIMEOUT = 60
DEFAULT_CERT_FOLDER = "~/.myCerts"
DEFAULT_FALLBACK_DOCUMENT = "404.html"
DEFAULT_ALIASES = {"/t1": "/t1/index.html"}
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigurationError(Exception):
    """Raised when command-line values cannot form a valid configuration."""


@dataclass(frozen=True)
class ServerConfig:
    """Immutable server settings shared read-only by every request."""

    root_directory: Path
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    listen_port: int = DEFAULT_LISTEN_PORT
    hostname: str = DEFAULT_LISTEN_ADDRESS
    secure: bool = True
    chunk_threshold: int = DEFAULT_CHUNK_THRESHOLD
    chunk_size: int = DEFAULT_CHUNK_SIZE
    delay_ms: int = DEFAULT_DELAY_MS
    idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    cert_folder: Path = Path(DEFAULT_CERT_FOLDER).expanduser()
    aliases: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    fallback_document: Path = Path(DEFAULT_FALLBACK_DOCUMENT)
    log_level: str = "INFO"
    log_destination: str = "stdout"

    @property
    def scheme(self) -> str:
        """URL scheme matching the transport."""
        return "https" if self.secure else "http"

    @property
    def base_url(self) -> str:
        """Public URL used as the parsing context for request targets."""
        return f"{self.scheme}://{self.hostname}:{self.listen_port}"


class UsageArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports errors with exit status 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(USAGE_EXIT_CODE, f"{self.prog}: error: {message}\n")


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return value


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return value


def _port(text: str) -> int:
    value = _non_negative_int(text)
    if value > 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {value}")
    return value


def _non_empty(text: str) -> str:
    if not text.strip():
        raise argparse.ArgumentTypeError("value must not be empty")
    return text


def _alias(text: str) -> tuple[str, str]:
    source, sep, target = text.partition("=")
    if not sep or not source.startswith("/") or not target.startswith("/"):
        raise argparse.ArgumentTypeError(
            f"alias must look like /path=/target/path: {text!r}"
        )
    return source, target


def build_parser() -> UsageArgumentParser:
    """Create the command-line parser."""
    parser = UsageArgumentParser(
        description="Local development file server for HTTP or HTTPS",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=_port,
        default=DEFAULT_LISTEN_PORT,
        help=f"port number (default: {DEFAULT_LISTEN_PORT})",
    )
    parser.add_argument(
        "-l",
        "--listen",
        type=_non_empty,
        default=DEFAULT_LISTEN_ADDRESS,
        help=f"listen address (default: {DEFAULT_LISTEN_ADDRESS})",
    )
    parser.add_argument(
        "-H",
        "--hostname",
        type=_non_empty,
        default=None,
        help="public hostname (default: the listen address)",
    )
    parser.add_argument(
        "-n",
        "--insecure",
        action="store_true",
        help="serve plain http instead of https",
    )
    parser.add_argument(
        "-c",
        "--chunk-threshold",
        type=_positive_int,
        default=_env_str("DEVSERVER_CHUNK_THRESHOLD", str(DEFAULT_CHUNK_THRESHOLD)),
        help=f"bytes above which chunked transfer is used (default: {DEFAULT_CHUNK_THRESHOLD})",
    )
    parser.add_argument(
        "-s",
        "--chunk-size",
        type=_positive_int,
        default=_env_str("DEVSERVER_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE)),
        help=f"bytes per chunk in chunked transfer (default: {DEFAULT_CHUNK_SIZE})",
    )
    parser.add_argument(
        "-C",
        "--cert-folder",
        type=_non_empty,
        default=None,
        help=f"folder holding privkey.pem and fullchain.pem (default: {DEFAULT_CERT_FOLDER})",
    )
    parser.add_argument(
        "-D",
        "--delay",
        type=_non_negative_int,
        default=DEFAULT_DELAY_MS,
        help="delay inserted before every response, in ms (default: 0)",
    )
    parser.add_argument(
        "-T",
        "--idle-timeout",
        type=_positive_int,
        default=_env_str("DEVSERVER_IDLE_TIMEOUT_MS", str(DEFAULT_IDLE_TIMEOUT_MS)),
        help=f"stop after this many idle ms (default: {DEFAULT_IDLE_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--socket-timeout",
        type=_positive_int,
        default=_env_str("DEVSERVER_SOCKET_TIMEOUT", str(DEFAULT_SOCKET_TIMEOUT)),
        help=f"seconds a connection may wait for its next request (default: {DEFAULT_SOCKET_TIMEOUT})",
    )
    parser.add_argument(
        "-a",
        "--alias",
        type=_alias,
        action="append",
        default=[],
        help="serve TARGET when SOURCE is requested, as /SOURCE=/TARGET (repeatable)",
    )
    parser.add_argument(
        "--fallback-document",
        default=DEFAULT_FALLBACK_DOCUMENT,
        help="document served with 404 responses, relative to the working directory",
    )
    parser.add_argument(
        "--log-level",
        default=_env_str("DEVSERVER_LOG_LEVEL", "INFO").upper(),
        choices=LOG_LEVELS,
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=_env_str("DEVSERVER_LOG_DESTINATION", "stdout"),
        help="stdout or a file path",
    )
    parser.add_argument("serving_folder", nargs="?", default=None)
    parser.add_argument("config_folder", nargs="?", default=None)
    return parser


def parse_cli_args(argv: Sequence[str]) -> argparse.Namespace:
    """Return parsed CLI arguments; exits with status 1 on invalid input."""
    return build_parser().parse_args(list(argv))


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Turn parsed arguments into a :class:`ServerConfig`."""
    root = Path(args.serving_folder or os.getcwd()).expanduser().resolve()
    if not root.is_dir():
        raise ConfigurationError(f"serving folder is not a directory: {root}")

    cert_folder = args.cert_folder or args.config_folder or DEFAULT_CERT_FOLDER
    aliases = dict(DEFAULT_ALIASES)
    aliases.update(dict(args.alias))

    return ServerConfig(
        root_directory=root,
        listen_address=args.listen,
        listen_port=args.port,
        hostname=args.hostname or args.listen,
        secure=not args.insecure,
        chunk_threshold=args.chunk_threshold,
        chunk_size=args.chunk_size,
        delay_ms=args.delay,
        idle_timeout_ms=args.idle_timeout,
        socket_timeout=args.socket_timeout,
        cert_folder=Path(cert_folder).expanduser(),
        aliases=aliases,
        fallback_document=Path(args.fallback_document),
        log_level=args.log_level,
        log_destination=args.log_destination,
    )


def load_config(argv: Sequence[str], parser: Optional[UsageArgumentParser] = None) -> ServerConfig:
    """Parse ``argv`` and build the config, reporting failures as usage errors."""
    parser = parser or build_parser()
    args = parser.parse_args(list(argv))
    try:
        return build_config(args)
    except ConfigurationError as error:
        parser.error(str(error))
