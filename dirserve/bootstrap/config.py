"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


DEFAULT_HOST = _env_str("DIRSERVE_HOST", "127.0.0.1")
DEFAULT_PORT = _env_int("DIRSERVE_PORT", 8000)
DEFAULT_SOCKET_TIMEOUT = _env_int("DIRSERVE_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("DIRSERVE_SHUTDOWN_GRACE_SECONDS", 5)
DEFAULT_MAX_REQUEST_LINE_BYTES = _env_int("DIRSERVE_MAX_REQUEST_LINE_BYTES", 8192)
DEFAULT_ACCEPT_POLL_INTERVAL = _env_float("DIRSERVE_ACCEPT_POLL_INTERVAL", 0.5)


@dataclass(frozen=True)
class ServerState:
    """Read-only state shared by every connection; ``root`` is canonical."""

    root: Path


@dataclass
class ServerConfig:
    """Server configuration including timeouts and shutdown settings."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS
    max_request_line_bytes: int = DEFAULT_MAX_REQUEST_LINE_BYTES
    accept_poll_interval: float = DEFAULT_ACCEPT_POLL_INTERVAL

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ServerConfig":
        """Build a config from parsed command-line arguments."""
        return cls(
            host=args.host,
            port=args.port,
            socket_timeout=args.socket_timeout,
            shutdown_grace_seconds=args.shutdown_grace_seconds,
            max_request_line_bytes=args.max_request_line_bytes,
        )

    def grace_timeout(self) -> Optional[float]:
        """Drain timeout for shutdown; ``None`` waits for every connection."""
        if self.shutdown_grace_seconds <= 0:
            return None
        return float(self.shutdown_grace_seconds)


def build_server_state(directory: str | os.PathLike) -> ServerState:
    """Canonicalize ``directory`` into the shared server state.

    Raises ``FileNotFoundError`` when it does not exist and
    ``NotADirectoryError`` when it is not a directory.
    """
    root = Path(directory).resolve(strict=True)
    if not root.is_dir():
        raise NotADirectoryError(str(root))
    return ServerState(root=root)


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(
        description="Serve a directory tree over HTTP"
    )
    parser.add_argument("-a", "--host", default=DEFAULT_HOST)
    parser.add_argument("-p", "--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "-d",
        "--directory",
        default=".",
        help="Root directory to serve (default: current directory)",
    )
    default_log_level = os.getenv("DIRSERVE_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("DIRSERVE_LOG_DESTINATION", "stdout")
    default_format = os.getenv("DIRSERVE_LOG_FORMAT", "json").lower()
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=default_format,
        choices=["json", "text"],
        type=str.lower,
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for each connection",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Seconds to wait for in-flight connections on shutdown (0 waits forever)",
    )
    parser.add_argument(
        "--max-request-line-bytes",
        type=int,
        default=DEFAULT_MAX_REQUEST_LINE_BYTES,
        help="Longest request line accepted before answering 400",
    )
    return parser.parse_args(argv)
