"""Shared HTTP type definitions to avoid circular imports."""

import enum
from dataclasses import dataclass

# Every response carries this token on its status line, whatever version the
# client spoke. HTTP/1.1 requests still compute keep_open=True.
RESPONSE_PROTOCOL = "HTTP/1.0"

STATUS_OK = "200 Ok"
STATUS_BAD_REQUEST = "400 Bad Request"
STATUS_NOT_FOUND = "404 Not Found"
STATUS_METHOD_NOT_ALLOWED = "405 Method Not Allowed"
STATUS_INTERNAL_ERROR = "500 Internal Server Error"
STATUS_VERSION_NOT_SUPPORTED = "505 HTTP Version Not Supported"


class Method(enum.Enum):
    """Request methods recognised on the request line."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    CONNECT = "CONNECT"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    PATCH = "PATCH"


class HttpVersion(enum.Enum):
    """Protocol versions distinguished by the server."""

    HTTP_1_0 = "HTTP/1.0"
    HTTP_1_1 = "HTTP/1.1"
    UNKNOWN = "unknown"


METHODS: dict[bytes, Method] = {
    method.value.encode("ascii"): method for method in Method
}

VERSIONS: dict[bytes, HttpVersion] = {
    b"HTTP/1.0": HttpVersion.HTTP_1_0,
    b"HTTP/1.1": HttpVersion.HTTP_1_1,
}


@dataclass(frozen=True)
class RequestLine:
    """The parsed first line of an HTTP request."""

    method: Method
    uri: str
    version: HttpVersion


@dataclass(frozen=True)
class ResponseOptions:
    """Per-response flags derived from the request method and version."""

    keep_open: bool = False
    omit_body: bool = False
