"""Request-line validation and response option derivation."""

from dirserve.domain.http_types import (
    METHODS,
    STATUS_BAD_REQUEST,
    STATUS_METHOD_NOT_ALLOWED,
    STATUS_VERSION_NOT_SUPPORTED,
    VERSIONS,
    HttpVersion,
    Method,
)


class ProtocolError(Exception):
    """Raised for a request line the server cannot act on.

    ``status`` is the status text written back to the client.
    """

    status = STATUS_BAD_REQUEST


class RequestLineTooLong(ProtocolError):
    """Raised when no line terminator arrives within the configured limit."""


class MethodNotAllowed(ProtocolError):
    """Raised for methods outside the table or ones the server does not serve."""

    status = STATUS_METHOD_NOT_ALLOWED


class VersionNotSupported(ProtocolError):
    """Raised when the request names a protocol version other than 1.0/1.1."""

    status = STATUS_VERSION_NOT_SUPPORTED


def lookup_method(token: bytes) -> Method:
    """Map a method token to :class:`Method` using an exact, case-sensitive match."""
    method = METHODS.get(token)
    if method is None:
        raise MethodNotAllowed("invalid request line")
    return method


def lookup_version(token: bytes) -> HttpVersion:
    """Map a version token; anything unrecognised is ``HttpVersion.UNKNOWN``."""
    return VERSIONS.get(token, HttpVersion.UNKNOWN)


def omit_body_for(method: Method) -> bool:
    """Return whether the response body is suppressed for ``method``."""
    if method is Method.GET:
        return False
    if method is Method.HEAD:
        return True
    raise MethodNotAllowed(method.value)


def keep_open_for(version: HttpVersion) -> bool:
    """Return whether a connection speaking ``version`` is eligible for reuse."""
    if version is HttpVersion.HTTP_1_0:
        return False
    if version is HttpVersion.HTTP_1_1:
        return True
    raise VersionNotSupported(version.value)
