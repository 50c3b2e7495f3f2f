"""Listening socket creation."""

import socket

from dirserve.bootstrap.config import ServerConfig
from dirserve.domain.connection_id import get_logger

SOCKET_LOGGER = get_logger("socket")


def create_server_socket(config: ServerConfig) -> socket.socket:
    """Bind and listen on the configured address.

    The accept timeout is how often the accept loop checks for cancellation.
    """
    server_socket = socket.create_server((config.host, config.port))
    server_socket.settimeout(config.accept_poll_interval)
    SOCKET_LOGGER.debug(
        "Listening socket bound",
        extra={
            "event": "socket_bound",
            "host": config.host,
            "port": server_socket.getsockname()[1],
        },
    )
    return server_socket
