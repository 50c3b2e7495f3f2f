"""Main connection acceptance loop."""

import logging
import socket
import threading
from typing import Optional

from dirserve.bootstrap.config import ServerConfig, ServerState
from dirserve.bootstrap.socket_factory import create_server_socket
from dirserve.domain.connection_id import get_logger
from dirserve.lifecycle.state import ServerLifecycle
from dirserve.transport.context import WorkerContext
from dirserve.transport.worker import handle_client

ACCEPT_LOGGER = get_logger("transport.accept")


def _spawn_worker(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Count the connection as in flight, then hand it to its own thread."""
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={"event": "client_accepted", "client": client_addr_str},
        )

    context.lifecycle.register_connection()
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        daemon=True,
    )
    try:
        thread.start()
    except RuntimeError as error:
        context.lifecycle.release_connection()
        client_socket.close()
        ACCEPT_LOGGER.error(
            "Failed to start worker thread",
            extra={
                "event": "worker_start_failed",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )


def run_server(
    config: ServerConfig,
    state: ServerState,
    lifecycle: ServerLifecycle,
    server_socket: Optional[socket.socket] = None,
) -> bool:
    """Accept connections until cancelled, then wait for in-flight ones.

    ``server_socket`` must already be listening with a timeout set; when
    omitted one is created from ``config``. Returns ``False`` only when the
    configured grace period expires before every connection finished.
    """
    if server_socket is None:
        server_socket = create_server_socket(config)
    host, port = server_socket.getsockname()[:2]

    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "host": host,
            "port": port,
            "directory": state.root.as_posix(),
        },
    )

    context = WorkerContext(state=state, lifecycle=lifecycle, config=config)

    try:
        while not lifecycle.should_stop():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle.should_stop():
                client_socket.close()
                ACCEPT_LOGGER.info(
                    "Refused connection accepted after shutdown began",
                    extra={
                        "event": "connection_refused_draining",
                        "client": f"{client_address[0]}:{client_address[1]}",
                    },
                )
                break

            _spawn_worker(client_socket, client_address, context)
    finally:
        server_socket.close()
        lifecycle.mark_draining()

    ACCEPT_LOGGER.info(
        "Waiting for active connections to complete",
        extra={
            "event": "shutdown_waiting",
            "active_connections": lifecycle.active_connection_count(),
            "grace_seconds": config.grace_timeout(),
        },
    )
    drained = lifecycle.wait_for_connections(config.grace_timeout())
    if drained:
        ACCEPT_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
    return drained
