"""Per-connection request handling: request line to response."""

import logging
import stat
from dataclasses import replace
from pathlib import Path

from dirserve.bootstrap.config import ServerState
from dirserve.domain.connection_id import get_logger
from dirserve.domain.http_types import (
    STATUS_INTERNAL_ERROR,
    STATUS_NOT_FOUND,
    STATUS_OK,
    RequestLine,
    ResponseOptions,
)
from dirserve.domain.sandbox import PathTraversal, resolve_sandbox_path
from dirserve.handlers.directory_handler import LISTING_CONTENT_TYPE, directory_listing
from dirserve.handlers.file_handler import open_file
from dirserve.pipeline.io import HttpConnection
from dirserve.pipeline.validation import ProtocolError, keep_open_for, omit_body_for

DISPATCH_LOGGER = get_logger("pipeline.dispatch")


def handle_request(connection: HttpConnection, state: ServerState) -> None:
    """Serve exactly one request on ``connection``.

    Each step either advances or writes a terminal status response. A
    :class:`~dirserve.pipeline.io.ConnectionClosed` from the read step and any
    socket error raised while writing propagate to the caller.
    """
    options = ResponseOptions()
    try:
        request_line = connection.read_request_line()
    except ProtocolError as error:
        DISPATCH_LOGGER.warning(
            "Rejected request line",
            extra={"event": "request_rejected", "status": error.status},
        )
        connection.write_status(error.status, options)
        return

    try:
        options = replace(options, omit_body=omit_body_for(request_line.method))
        options = replace(options, keep_open=keep_open_for(request_line.version))
    except ProtocolError as error:
        DISPATCH_LOGGER.info(
            "Unsupported request",
            extra={
                "event": "request_unsupported",
                "method": request_line.method.value,
                "version": request_line.version.value,
                "status": error.status,
            },
        )
        connection.write_status(error.status, options)
        return

    try:
        path = resolve_sandbox_path(state.root, request_line.uri)
    except PathTraversal:
        DISPATCH_LOGGER.info(
            "Path not resolvable inside root",
            extra={"event": "path_rejected", "route": request_line.uri},
        )
        connection.write_status(STATUS_NOT_FOUND, options)
        return

    serve_path(connection, path, request_line, options)


def _write_internal_error(
    connection: HttpConnection,
    request_line: RequestLine,
    options: ResponseOptions,
    error: OSError,
) -> None:
    DISPATCH_LOGGER.error(
        "Failed to prepare response body",
        extra={
            "event": "serve_error",
            "route": request_line.uri,
            "error_type": type(error).__name__,
        },
    )
    connection.write_status(STATUS_INTERNAL_ERROR, options)


def serve_directory(
    connection: HttpConnection,
    path: Path,
    request_line: RequestLine,
    options: ResponseOptions,
) -> None:
    """Render and send the listing for ``path``."""
    try:
        body = directory_listing(path, request_line.uri)
    except OSError as error:
        _write_internal_error(connection, request_line, options, error)
        return
    connection.write_buffer(STATUS_OK, body, LISTING_CONTENT_TYPE, options)


def serve_file(
    connection: HttpConnection,
    path: Path,
    request_line: RequestLine,
    options: ResponseOptions,
) -> None:
    """Stream the regular file at ``path``."""
    try:
        opened = open_file(path)
    except OSError as error:
        _write_internal_error(connection, request_line, options, error)
        return

    with opened.handle:
        if DISPATCH_LOGGER.logger.isEnabledFor(logging.DEBUG):
            DISPATCH_LOGGER.debug(
                "File streaming started",
                extra={"event": "file_streaming_started", "route": request_line.uri},
            )
        connection.write_stream(
            STATUS_OK, opened.handle, opened.content_type, opened.length, options
        )


def serve_path(
    connection: HttpConnection,
    path: Path,
    request_line: RequestLine,
    options: ResponseOptions,
) -> None:
    """Dispatch on the file type of a resolved path."""
    try:
        mode = path.stat().st_mode
    except OSError as error:
        _write_internal_error(connection, request_line, options, error)
        return

    if stat.S_ISDIR(mode):
        serve_directory(connection, path, request_line, options)
    elif stat.S_ISREG(mode):
        serve_file(connection, path, request_line, options)
    else:
        DISPATCH_LOGGER.info(
            "Refusing to serve special file",
            extra={"event": "path_rejected", "route": request_line.uri},
        )
        connection.write_status(STATUS_NOT_FOUND, options)
