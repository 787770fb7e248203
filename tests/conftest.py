"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"

BIG_FILE_SIZE = 2_000_000
FALLBACK_BODY = b"<h1>nothing here</h1>"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    directory: Path
    workdir: Path
    process: subprocess.Popen[str]
    log_file: Path


def server_command(host: str, port: int, directory: Path, *extra_args: str) -> list[str]:
    """Build the command line that starts a plain-http server."""

    return [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "-n",
        "-l",
        host,
        "-p",
        str(port),
        *extra_args,
        str(directory),
    ]


def _launch_server(
    host: str,
    port: int,
    directory: Path,
    workdir: Path,
    extra_args: list[str] | None = None,
) -> Generator[ServerProcessInfo, None, None]:
    log_file = workdir / "server.log"
    args = server_command(
        host, port, directory, "--log-destination", str(log_file), *(extra_args or [])
    )

    with subprocess.Popen(
        args,
        cwd=workdir,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "directory": directory,
            "workdir": workdir,
            "process": process,
            "log_file": log_file,
        }

        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()


def populate_site(directory: Path) -> Path:
    """Write the documents every integration test expects."""

    (directory / "index.html").write_text("<h1>home</h1>")
    (directory / "page.html").write_text("<p>page</p>")
    (directory / "style.css").write_text("body { color: red; }")
    (directory / "big.bin").write_bytes(bytes(i % 251 for i in range(BIG_FILE_SIZE)))
    (directory / "docs").mkdir()
    (directory / "docs" / "index.html").write_text("<h1>docs</h1>")
    (directory / "t1").mkdir()
    (directory / "t1" / "index.html").write_text("<h1>t1</h1>")
    return directory


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="site_directory")
def _site_directory(tmp_path_factory: "TempPathFactory") -> Path:
    """A populated serving directory."""

    return populate_site(tmp_path_factory.mktemp("site"))


@pytest.fixture(name="workdir")
def _workdir(tmp_path_factory: "TempPathFactory") -> Path:
    """Working directory of the server process, holding the 404 document."""

    directory = tmp_path_factory.mktemp("workdir")
    (directory / "404.html").write_bytes(FALLBACK_BODY)
    return directory


@pytest.fixture(name="launch_server")
def _launch_server_factory(
    site_directory: Path, workdir: Path
) -> Generator[Callable[..., ServerProcessInfo], None, None]:
    """Start servers with extra CLI flags; all are stopped at teardown."""

    launched: list[Generator[ServerProcessInfo, None, None]] = []

    def launch(*extra_args: str) -> ServerProcessInfo:
        host = "127.0.0.1"
        generator = _launch_server(
            host, reserve_port(host), site_directory, workdir, list(extra_args)
        )
        launched.append(generator)
        return next(generator)

    yield launch

    for generator in launched:
        for _ in generator:
            pass


@pytest.fixture(name="server_process")
def _server_process(
    launch_server: Callable[..., ServerProcessInfo],
) -> ServerProcessInfo:
    """Launch the server with default chunking in a background process."""

    return launch_server()


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
