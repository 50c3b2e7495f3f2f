"""Static file and directory listing server entry point."""

import signal
import sys

from dirserve.bootstrap.config import (
    ServerConfig,
    build_server_state,
    parse_cli_args,
)
from dirserve.bootstrap.logging_setup import configure_logging
from dirserve.bootstrap.socket_factory import create_server_socket
from dirserve.domain.connection_id import get_logger
from dirserve.lifecycle.state import ServerLifecycle
from dirserve.transport.accept_loop import run_server

SERVER_LOGGER = get_logger("server")

EXIT_FORCED_SHUTDOWN = 1
EXIT_BAD_ROOT = 2


def main(argv: list[str] | None = None) -> int:
    """Start the server and block until it has shut down."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination, args.log_format == "json")

    try:
        state = build_server_state(args.directory)
    except OSError as error:
        SERVER_LOGGER.critical(
            "Root directory is not usable",
            extra={
                "event": "bad_root",
                "directory": args.directory,
                "error_type": type(error).__name__,
            },
        )
        return EXIT_BAD_ROOT

    config = ServerConfig.from_args(args)
    lifecycle = ServerLifecycle()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal",
            extra={"event": "signal_received", "signal": signum},
        )
        lifecycle.begin_draining()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    try:
        server_socket = create_server_socket(config)
    except OSError as error:
        SERVER_LOGGER.critical(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": config.host,
                "port": config.port,
                "error_type": type(error).__name__,
            },
        )
        return EXIT_FORCED_SHUTDOWN

    print(f"http://{config.host}:{server_socket.getsockname()[1]}", flush=True)
    SERVER_LOGGER.info(
        "Starting HTTP server",
        extra={
            "event": "server_starting",
            "host": config.host,
            "port": config.port,
            "directory": state.root.as_posix(),
            "log_destination": args.log_destination,
            "log_level": args.log_level,
        },
    )

    if not run_server(config, state, lifecycle, server_socket):
        SERVER_LOGGER.critical(
            "Forced shutdown after timeout",
            extra={
                "event": "forced_shutdown",
                "active_connections": lifecycle.active_connection_count(),
            },
        )
        return EXIT_FORCED_SHUTDOWN
    return 0


if __name__ == "__main__":
    sys.exit(main())
