"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"

TEXT_CONTENT = b"hello from dirserve\n"
BINARY_CONTENT = bytes(range(256)) * 512


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    directory: Path
    outside: Path
    process: subprocess.Popen[str]
    log_file: Path


def populate_tree(root: Path) -> None:
    """Create the files and directories the tests expect under ``root``."""

    (root / "a.txt").write_bytes(TEXT_CONTENT)
    (root / "blob.bin").write_bytes(BINARY_CONTENT)
    (root / "page.html").write_text("<p>page</p>")
    sub = root / "sub"
    sub.mkdir()
    (sub / "nested.txt").write_text("nested")


def launch_server(
    directory: Path,
    log_file: Path,
    extra_args: list[str] | None = None,
    host: str = "127.0.0.1",
) -> tuple[subprocess.Popen[str], int]:
    """Start ``main.py`` serving ``directory`` and wait for it to listen."""

    port = reserve_port(host)
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--directory",
        str(directory),
        "--host",
        host,
        "--port",
        str(port),
        "--log-destination",
        str(log_file),
        "--log-level",
        "DEBUG",
    ]
    if extra_args:
        args.extend(extra_args)

    process = subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        wait_for_port(host, port)
    except Exception:
        process.terminate()
        stdout, stderr = process.communicate(timeout=5)
        print(f"\nServer stdout:\n{stdout}")
        print(f"\nServer stderr:\n{stderr}")
        raise
    return process, port


def stop_server(process: subprocess.Popen[str]) -> None:
    """Terminate a server process if it is still running."""

    if process.poll() is None:
        process.terminate()
        try:
            process.wait(timeout=10)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait(timeout=5)
    for stream in (process.stdout, process.stderr):
        if stream is not None:
            stream.close()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="served_tree")
def _served_tree(tmp_path: Path) -> Path:
    """A populated directory to serve, with a sibling directory outside it."""

    root = tmp_path / "root"
    root.mkdir()
    populate_tree(root)
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("secret")
    return root


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server in a background process for integration tests."""

    base = tmp_path_factory.mktemp("server")
    directory = base / "root"
    directory.mkdir()
    populate_tree(directory)
    outside = base / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("secret")
    log_file = base / "server.log"

    process, port = launch_server(directory, log_file)
    host = "127.0.0.1"
    yield {
        "base_url": f"http://{host}:{port}",
        "host": host,
        "port": port,
        "directory": directory,
        "outside": outside,
        "process": process,
        "log_file": log_file,
    }
    stop_server(process)


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
