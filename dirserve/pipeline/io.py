"""HTTP Input/Output operations."""

import logging
import socket
from email.utils import formatdate
from typing import BinaryIO, Optional

from dirserve.domain.connection_id import get_logger
from dirserve.domain.http_types import RESPONSE_PROTOCOL, RequestLine, ResponseOptions
from dirserve.pipeline.validation import (
    ProtocolError,
    RequestLineTooLong,
    lookup_method,
    lookup_version,
)

IO_LOGGER = get_logger("pipeline.io")

LINE_TERMINATOR = b"\r\n"
READ_CHUNK_SIZE = 4096
STREAM_CHUNK_SIZE = 65536
DEFAULT_MAX_REQUEST_LINE_BYTES = 8192
STATUS_CONTENT_TYPE = "text/plain"


class ConnectionClosed(Exception):
    """Raised when the peer closes before a complete request line arrives."""


def find_line_end(buffer: bytes | bytearray, start: int) -> int:
    """Return the offset of the first CRLF at or after ``start``, or -1."""
    return buffer.find(LINE_TERMINATOR, start)


def parse_request_line(line: bytes) -> RequestLine:
    """Decode ``METHOD SP URI SP VERSION`` into a :class:`RequestLine`.

    Fewer than three space-separated fields or a URI that is not UTF-8 is a
    :class:`ProtocolError`; an unknown method is
    :class:`~dirserve.pipeline.validation.MethodNotAllowed`. The version is
    never rejected here.
    """
    parts = line.split(b" ")
    if len(parts) < 3:
        raise ProtocolError("invalid request line")
    method = lookup_method(parts[0])
    try:
        uri = parts[1].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError("invalid request line") from exc
    return RequestLine(method, uri, lookup_version(parts[2]))


class HttpConnection:
    """One client connection: reads a request line and writes one response.

    The same buffer holds the incoming bytes while the request line is read
    and the header block of the response afterwards.
    """

    def __init__(
        self,
        client_socket: socket.socket,
        max_request_line_bytes: int = DEFAULT_MAX_REQUEST_LINE_BYTES,
    ) -> None:
        self.socket = client_socket
        self._buffer = bytearray()
        self._cursor = 0
        self._max_request_line_bytes = max_request_line_bytes
        self.status_sent: Optional[str] = None
        self.bytes_sent = 0

    @property
    def cursor(self) -> int:
        """Offset from which the next terminator scan starts."""
        return self._cursor

    def read_request_line(self) -> RequestLine:
        """Read from the socket until a full request line is buffered, then decode it."""
        while True:
            chunk = self.socket.recv(READ_CHUNK_SIZE)
            if not chunk:
                raise ConnectionClosed("connection closed")
            self._buffer += chunk

            line_end = find_line_end(self._buffer, self._cursor)
            if line_end >= 0:
                if line_end > self._max_request_line_bytes:
                    raise RequestLineTooLong("request line too long")
                break
            if len(self._buffer) > self._max_request_line_bytes:
                raise RequestLineTooLong("request line too long")
            # The last byte may be the '\r' of a terminator split across reads.
            self._cursor = len(self._buffer) - 1

        request_line = parse_request_line(bytes(self._buffer[:line_end]))
        if IO_LOGGER.logger.isEnabledFor(logging.DEBUG):
            IO_LOGGER.debug(
                "Request line parsed",
                extra={
                    "event": "request_line_parsed",
                    "method": request_line.method.value,
                    "route": request_line.uri,
                    "version": request_line.version.value,
                },
            )
        return request_line

    def _prepare_headers(self, status: str, content_type: str, length: int) -> None:
        self._buffer.clear()
        self._buffer += (
            f"{RESPONSE_PROTOCOL} {status}\r\n"
            f"Date: {formatdate(usegmt=True)}\r\n"
            f"Content-Type: {content_type}\r\n"
            f"Content-Length: {length}\r\n"
            "\r\n"
        ).encode()

    def _send(self, data: bytes | bytearray | memoryview) -> None:
        self.socket.sendall(data)
        self.bytes_sent += len(data)

    def write_status(self, status: str, options: ResponseOptions) -> None:
        """Send a response whose body is the status text itself.

        With ``omit_body`` nothing is sent at all, headers included.
        """
        body = status.encode()
        self._prepare_headers(status, STATUS_CONTENT_TYPE, len(body))
        if options.omit_body:
            return
        self._buffer += body
        self._send(self._buffer)
        self._finish(status, len(body))

    def write_buffer(
        self,
        status: str,
        body: bytes,
        content_type: str,
        options: ResponseOptions,
    ) -> None:
        """Send headers and, unless ``omit_body`` is set, a materialized body."""
        self._prepare_headers(status, content_type, len(body))
        self._send(self._buffer)
        if not options.omit_body:
            self._send(body)
        self._finish(status, len(body))

    def write_stream(
        self,
        status: str,
        source: BinaryIO,
        content_type: str,
        length: int,
        options: ResponseOptions,
    ) -> None:
        """Send headers and copy up to ``length`` bytes from ``source``."""
        # pylint: disable=too-many-arguments, too-many-positional-arguments
        self._prepare_headers(status, content_type, length)
        self._send(self._buffer)
        if options.omit_body:
            self._finish(status, length)
            return

        remaining = length
        while remaining > 0:
            chunk = source.read(min(STREAM_CHUNK_SIZE, remaining))
            if not chunk:
                IO_LOGGER.warning(
                    "Stream ended before declared length",
                    extra={"event": "stream_truncated", "bytes_missing": remaining},
                )
                break
            self._send(chunk)
            remaining -= len(chunk)
        self._finish(status, length)

    def _finish(self, status: str, content_length: int) -> None:
        self.status_sent = status
        if IO_LOGGER.logger.isEnabledFor(logging.DEBUG):
            IO_LOGGER.debug(
                "Sent response",
                extra={
                    "event": "response_sent",
                    "status": status,
                    "content_length": content_length,
                },
            )
