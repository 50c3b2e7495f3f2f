"""Unit tests validating HTTP response framing."""

import io
from email.utils import parsedate_to_datetime

from dirserve.domain.http_types import ResponseOptions
from dirserve.pipeline.io import STREAM_CHUNK_SIZE, HttpConnection
from tests.utils.http import FakeSocket, parse_raw_response

BODY_OPTIONS = ResponseOptions()
HEAD_OPTIONS = ResponseOptions(omit_body=True)


def _connection() -> tuple[HttpConnection, FakeSocket]:
    sock = FakeSocket()
    return HttpConnection(sock), sock


def test_write_status_uses_status_text_as_body():
    """Status-only responses carry their status text as a text body."""
    connection, sock = _connection()
    connection.write_status("404 Not Found", BODY_OPTIONS)

    response = parse_raw_response(bytes(sock.sent))
    assert response.status_line == "HTTP/1.0 404 Not Found"
    assert response.headers["content-type"] == "text/plain"
    assert response.headers["content-length"] == str(len("404 Not Found"))
    assert response.body == b"404 Not Found"
    assert connection.status_sent == "404 Not Found"


def test_write_status_with_omit_body_sends_nothing():
    """Status-only responses for body-less requests send no bytes at all."""
    connection, sock = _connection()
    connection.write_status("505 HTTP Version Not Supported", HEAD_OPTIONS)
    assert sock.sent == b""
    assert connection.bytes_sent == 0
    assert connection.status_sent is None


def test_headers_are_written_in_fixed_order():
    """Status line, Date, Content-Type, Content-Length, blank line."""
    connection, sock = _connection()
    connection.write_buffer("200 Ok", b"abc", "text/html", BODY_OPTIONS)

    head, _, body = bytes(sock.sent).partition(b"\r\n\r\n")
    names = [line.split(b":", 1)[0] for line in head.split(b"\r\n")[1:]]
    assert names == [b"Date", b"Content-Type", b"Content-Length"]
    assert body == b"abc"


def test_status_line_is_always_http_1_0():
    """The response protocol token does not follow the request version."""
    connection, sock = _connection()
    connection.write_buffer(
        "200 Ok", b"", "text/html", ResponseOptions(keep_open=True)
    )
    assert bytes(sock.sent).startswith(b"HTTP/1.0 200 Ok\r\n")


def test_date_header_is_http_date():
    """Date is an RFC 7231 IMF-fixdate in GMT."""
    connection, sock = _connection()
    connection.write_status("200 Ok", BODY_OPTIONS)

    date_value = parse_raw_response(bytes(sock.sent)).headers["date"]
    assert date_value.endswith(" GMT")
    assert parsedate_to_datetime(date_value).tzinfo is not None


def test_write_buffer_with_omit_body_sends_headers_only():
    """Content-Length still reflects the body that was not sent."""
    connection, sock = _connection()
    connection.write_buffer("200 Ok", b"<html></html>", "text/html", HEAD_OPTIONS)

    response = parse_raw_response(bytes(sock.sent))
    assert response.headers["content-length"] == "13"
    assert response.body == b""
    assert bytes(sock.sent).endswith(b"\r\n\r\n")


def test_write_stream_copies_declared_length():
    """Streams larger than one chunk are copied through completely."""
    payload = bytes(range(256)) * ((STREAM_CHUNK_SIZE // 256) + 3)
    connection, sock = _connection()
    connection.write_stream(
        "200 Ok", io.BytesIO(payload), "application/octet-stream", len(payload),
        BODY_OPTIONS,
    )

    response = parse_raw_response(bytes(sock.sent))
    assert response.headers["content-length"] == str(len(payload))
    assert response.body == payload


def test_write_stream_stops_at_declared_length():
    """Bytes beyond the declared length are never sent."""
    connection, sock = _connection()
    connection.write_stream(
        "200 Ok", io.BytesIO(b"0123456789"), "text/plain", 4, BODY_OPTIONS
    )
    assert parse_raw_response(bytes(sock.sent)).body == b"0123"


def test_write_stream_logs_short_source(caplog):
    """A source shorter than declared is sent as-is and reported."""
    connection, sock = _connection()
    connection.write_stream(
        "200 Ok", io.BytesIO(b"abc"), "text/plain", 10, BODY_OPTIONS
    )
    assert parse_raw_response(bytes(sock.sent)).body == b"abc"
    assert any(
        getattr(record, "event", None) == "stream_truncated" for record in caplog.records
    )


def test_write_stream_with_omit_body_does_not_read_source():
    """HEAD requests never touch the file contents."""
    source = io.BytesIO(b"payload")
    connection, sock = _connection()
    connection.write_stream("200 Ok", source, "text/plain", 7, HEAD_OPTIONS)

    assert parse_raw_response(bytes(sock.sent)).body == b""
    assert source.tell() == 0


def test_bytes_sent_counts_headers_and_body():
    """The byte counter covers everything written to the socket."""
    connection, sock = _connection()
    connection.write_buffer("200 Ok", b"xyz", "text/html", BODY_OPTIONS)
    assert connection.bytes_sent == len(sock.sent)


def test_header_buffer_is_reused_after_request_line():
    """Request bytes left in the buffer never leak into the response."""
    sock = FakeSocket([b"GET / HTTP/1.1\r\nHost: leak\r\n\r\n"])
    connection = HttpConnection(sock)
    connection.read_request_line()
    connection.write_status("200 Ok", BODY_OPTIONS)

    assert b"leak" not in sock.sent
    assert bytes(sock.sent).startswith(b"HTTP/1.0 200 Ok\r\n")
