"""Worker thread logic for handling individual client connections."""

import logging
import socket
import time

from dirserve.domain.connection_id import (
    clear_connection_id,
    get_logger,
    next_connection_id,
    set_connection_id,
)
from dirserve.pipeline.dispatch import handle_request
from dirserve.pipeline.io import READ_CHUNK_SIZE, ConnectionClosed, HttpConnection
from dirserve.transport.context import WorkerContext

WORKER_LOGGER = get_logger("transport.worker")

LINGER_SECONDS = 0.5


def _drain_input(client_socket: socket.socket, linger_seconds: float) -> None:
    """Discard unread client bytes until EOF or ``linger_seconds`` elapse."""
    deadline = time.monotonic() + linger_seconds
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            client_socket.settimeout(remaining)
            if not client_socket.recv(READ_CHUNK_SIZE):
                return
    except OSError:
        return


def _close_connection(client_socket: socket.socket, client_addr_str: str) -> None:
    try:
        client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    else:
        _drain_input(client_socket, LINGER_SECONDS)
    client_socket.close()

    if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        WORKER_LOGGER.debug(
            "Socket closed",
            extra={"event": "socket_closed", "client": client_addr_str},
        )


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Serve one request on ``client_socket``, then close it.

    Every failure is contained here so that one bad connection never
    reaches the accept loop.
    """
    set_connection_id(next_connection_id())
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    started = time.monotonic()
    connection = HttpConnection(client_socket, context.config.max_request_line_bytes)

    try:
        client_socket.settimeout(context.config.socket_timeout)
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Request processing started",
                extra={"event": "request_started", "client": client_addr_str},
            )
        handle_request(connection, context.state)
        WORKER_LOGGER.info(
            "Request processing complete",
            extra={
                "event": "request_complete",
                "client": client_addr_str,
                "status": connection.status_sent,
                "bytes_out": connection.bytes_sent,
                "duration_ms": round((time.monotonic() - started) * 1000, 3),
            },
        )
    except ConnectionClosed:
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Client closed before sending a request line",
                extra={"event": "client_disconnected", "client": client_addr_str},
            )
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.warning(
            "Connection dropped",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "bytes_out": connection.bytes_sent,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
    finally:
        _close_connection(client_socket, client_addr_str)
        context.lifecycle.release_connection()
        clear_connection_id()
