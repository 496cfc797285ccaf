"""
=============================================================================
HTTP SOCKET ERRORS
=============================================================================

The closed set of things that can go wrong while turning raw bytes into
an HTTP request on one connection.

=============================================================================
TWO KINDS OF "WRONG"
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Protocol errors vs usage warnings                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  PROTOCOL ERRORS (this module)                                       │
    │     └── The CLIENT sent something we cannot parse                    │
    │     └── Recorded on the socket, reported once via on_error()         │
    │     └── Never raised across the transport boundary                   │
    │                                                                      │
    │  USAGE WARNINGS (logged by HTTPSocket)                               │
    │     └── The APPLICATION called something at the wrong time           │
    │     └── e.g. reading request_method before headers arrived           │
    │     └── Logged at WARNING level, state is left untouched             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

INCOMPLETE_HEADER is special: the parser never produces it, because it
only runs once a complete CRLFCRLF-terminated block is buffered. The layer
that owns the connection raises it when the peer goes away mid-headers.

=============================================================================
"""

from enum import Enum


class HTTPSocketError(Enum):
    """Reasons a connection stopped interpreting inbound bytes as a request."""

    MALFORMED_REQUEST_LINE = "malformed_request_line"      # not METHOD SP URI SP VERSION
    MALFORMED_REQUEST_HEADER = "malformed_request_header"  # header line without ":"
    INVALID_HTTP_VERSION = "invalid_http_version"          # not HTTP/1.0 or HTTP/1.1
    INCOMPLETE_HEADER = "incomplete_header"                # peer left before CRLFCRLF

    @property
    def message(self) -> str:
        """Fixed human-readable description of this error."""
        return _ERROR_MESSAGES[self]

    @property
    def status_code(self) -> int:
        """
        HTTP status an owner should answer with for this error.

        505 is reserved for the version case so clients can tell "I can't
        speak your protocol" apart from "your request is garbage".
        """
        return _ERROR_STATUS_CODES[self]


_ERROR_MESSAGES = {
    HTTPSocketError.MALFORMED_REQUEST_LINE: "Malformed request line",
    HTTPSocketError.MALFORMED_REQUEST_HEADER: "Malformed request header",
    HTTPSocketError.INVALID_HTTP_VERSION: "Invalid HTTP version",
    HTTPSocketError.INCOMPLETE_HEADER: "Incomplete header received",
}

_ERROR_STATUS_CODES = {
    HTTPSocketError.MALFORMED_REQUEST_LINE: 400,
    HTTPSocketError.MALFORMED_REQUEST_HEADER: 400,
    HTTPSocketError.INVALID_HTTP_VERSION: 505,
    HTTPSocketError.INCOMPLETE_HEADER: 400,
}


class HTTPParseError(Exception):
    """
    Raised by RequestParser when a request line or header line is invalid.

    Carries the HTTPSocketError kind so the adapter can record it. The
    exception itself never leaves the adapter; HTTPSocket catches it and
    turns it into error state plus an on_error() notification.
    """

    def __init__(self, error: HTTPSocketError, detail: str = ""):
        message = error.message if not detail else f"{error.message}: {detail}"
        super().__init__(message)
        self.error = error
        self.status_code = error.status_code  # HTTP status to return
