"""
=============================================================================
HTTP SOCKET
=============================================================================

HTTPSocket sits on top of one raw byte stream (a Transport) and turns it
into a single HTTP exchange: one request in, one response out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         HTTPSocket layers                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Application (HTTPSocketListener)                                   │
    │      ▲ request_method, request_header(), read()                      │
    │      │                       write(), set_response_header(), close() │
    │      │                                                           ▼   │
    │   ┌──┴───────────────────────────────────────────────────────────┐  │
    │   │ HTTPSocket                                                    │  │
    │   │   inbound:  buffer → find CRLFCRLF → parse head → body bytes  │  │
    │   │   outbound: first write()/close() → response head, once      │  │
    │   └──┬───────────────────────────────────────────────────────────┘  │
    │      │ read_all()                                     write(), close()│
    │      ▼                                                           ▼   │
    │   Transport (raw bytes)                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
INBOUND STATE MACHINE
=============================================================================

    AWAITING_HEADERS ──(CRLFCRLF found, head valid)──► HEADERS_COMPLETE
           │                                                │
           │ (CRLFCRLF found, head invalid)                 │ every later
           ▼                                                │ arrival:
        ERRORED                                             ▼ on_ready_read()
      (bytes keep accumulating,
       never interpreted)

An owner calling abort_with_error() after the head parsed also moves to
ERRORED. request_headers_read stays True and body bytes already
buffered stay readable; later arrivals are buffered without on_ready_read.

On each arrival the new bytes are appended to the buffer. While awaiting
headers the whole buffer is searched for the terminator again, so a
terminator split across two reads is still found. Once found:

    buffer[:i]        → header block, parsed
    buffer[:i + 4]    → removed (block + terminator)
    buffer[i + 4:]    → stays, it is the start of the body

=============================================================================
OUTBOUND: DEFERRED HEADER WRITE
=============================================================================

The response head is written the first time it is needed and never again:

    write(b"...")  ──┐
                     ├──► _write_response_headers()  (guarded, runs once)
    close()        ──┘

After that point set_response_status_code() / set_response_header() are
ignored with a warning, since the bytes are already on their way.

=============================================================================
"""

import logging
from enum import Enum
from typing import Optional, Union

from ..core.transport import Transport
from .errors import HTTPSocketError, HTTPParseError
from .request import RequestHead, RequestParser, HEADER_TERMINATOR
from .response import ResponseHead, DEFAULT_STATUS_CODE, check_head_text
from .status_codes import status_text


logger = logging.getLogger(__name__)


class ParserState(Enum):
    """Where the inbound side of the connection is."""
    AWAITING_HEADERS = "awaiting_headers"
    HEADERS_COMPLETE = "headers_complete"
    ERRORED = "errored"


class HTTPSocketListener:
    """
    Receives notifications from one HTTPSocket.

    Subclass and override what you need; every method defaults to a no-op.
    All callbacks run synchronously on the thread that drives the transport.
    """

    def on_request_headers_parsed(self, sock: "HTTPSocket") -> None:
        """The request head is available. Fires at most once, only on success."""

    def on_ready_read(self, sock: "HTTPSocket") -> None:
        """More body bytes arrived after the head was parsed."""

    def on_error(self, sock: "HTTPSocket", error: HTTPSocketError) -> None:
        """Parsing failed. Fires at most once. The connection stays open."""

    def on_bytes_written(self, sock: "HTTPSocket", count: int) -> None:
        """The transport delivered count previously written bytes."""

    def on_disconnected(self, sock: "HTTPSocket") -> None:
        """The peer closed its sending side."""


class HTTPSocket:
    """
    One HTTP/1.x exchange over a raw byte stream.

    Example:
        class Hello(HTTPSocketListener):
            def on_request_headers_parsed(self, sock):
                sock.set_response_header("Content-Type", "text/plain")
                sock.write(f"you asked for {sock.request_uri}".encode())
                sock.close()

        sock = HTTPSocket(transport, Hello())

    Args:
        transport: The connected byte stream. HTTPSocket binds itself as its
                   only consumer.
        listener: Notification target. Defaults to a no-op listener.
        default_status_code: Status used if the application never sets one.
        legacy_framing: Serialize the response head without per-header
                        CRLFs or the closing blank line.
    """

    def __init__(
        self,
        transport: Transport,
        listener: Optional[HTTPSocketListener] = None,
        default_status_code: str = DEFAULT_STATUS_CODE,
        legacy_framing: bool = False,
    ):
        self.transport = transport
        self.listener = listener or HTTPSocketListener()
        self.legacy_framing = legacy_framing

        self._parser = RequestParser()
        self._state = ParserState.AWAITING_HEADERS
        self._request_headers_read = False
        self._buffer = bytearray()

        self._error: Optional[HTTPSocketError] = None
        self._error_string = ""

        self._request = RequestHead()
        self._response = ResponseHead(status_code=check_head_text(default_status_code, "status"))
        self._response_headers_written = False

        transport.bind(
            on_ready_read=self._on_ready_read,
            on_bytes_written=self._on_bytes_written,
            on_disconnected=self._on_disconnected,
        )

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ParserState:
        return self._state

    @property
    def request_headers_read(self) -> bool:
        """Set once the head parsed successfully; a later abort leaves it set."""
        return self._request_headers_read

    @property
    def response_headers_written(self) -> bool:
        return self._response_headers_written

    @property
    def error(self) -> Optional[HTTPSocketError]:
        """The first parse error on this connection, or None."""
        return self._error

    @property
    def error_string(self) -> str:
        """Human-readable form of error, empty when there is none."""
        return self._error_string

    # =========================================================================
    # REQUEST ACCESSORS
    # =========================================================================
    # Only meaningful once on_request_headers_parsed() has fired. Earlier
    # calls are a programming mistake: warn and hand back the defaults.

    def _check_request_headers_read(self) -> None:
        if not self.request_headers_read:
            logger.warning("Request headers have not yet been read")

    @property
    def request_method(self) -> str:
        self._check_request_headers_read()
        return self._request.method

    @property
    def request_uri(self) -> str:
        """The request target exactly as sent, no decoding."""
        self._check_request_headers_read()
        return self._request.uri

    @property
    def request_version(self) -> str:
        self._check_request_headers_read()
        return self._request.version

    @property
    def request_headers(self) -> list[str]:
        """Names of all received headers, lower-cased."""
        self._check_request_headers_read()
        return list(self._request.headers)

    def request_header(self, name: str, default: str = "") -> str:
        """
        Look up a request header, case-insensitively.

        If the header was sent more than once, this is the last value.
        """
        self._check_request_headers_read()
        return self._request.get_header(name, default)

    # =========================================================================
    # RESPONSE ACCESSORS
    # =========================================================================

    @property
    def response_status_code(self) -> str:
        return self._response.status_code

    @property
    def response_headers(self) -> dict[str, str]:
        """Copy of the response headers in serialization order."""
        return dict(self._response.headers)

    def set_response_status_code(self, status: Union[str, int]) -> None:
        """
        Set the response status.

        Args:
            status: Free-form status text ("404 Not Found"), or a numeric
                    code / HTTPStatus which is rendered with its phrase
                    ("Unknown" for codes without one).

        Raises:
            ValueError: If status text contains CR or LF.
        """
        if self._response_headers_written:
            logger.warning("Response headers have already been written")
            return

        if isinstance(status, int):
            status = status_text(status)
        self._response.status_code = check_head_text(status, "status")

    def set_response_header(self, name: str, value: str) -> None:
        """
        Set or replace a response header.

        Raises:
            ValueError: If name or value contains CR or LF.
        """
        if self._response_headers_written:
            logger.warning("Response headers have already been written")
            return

        self._response.set_header(name, value)

    # =========================================================================
    # BODY TRANSFER
    # =========================================================================

    def bytes_available(self) -> int:
        """Body bytes buffered and ready for read()."""
        return len(self._buffer) if self.request_headers_read else 0

    def at_end(self) -> bool:
        """
        True when no more body bytes will ever be readable.

        read() returning b"" only means "nothing yet"; this distinguishes
        that from the peer having finished sending.
        """
        return self.transport.at_eof and not self.bytes_available()

    def read(self, max_size: int = -1) -> Optional[bytes]:
        """
        Take up to max_size body bytes from the front of the buffer.

        Args:
            max_size: Upper bound on the returned length; negative means
                      everything currently buffered.

        Returns:
            None if the request head has not been parsed (the stream is not
            readable yet), otherwise the bytes taken, possibly b"".
        """
        if not self.request_headers_read:
            return None

        size = len(self._buffer) if max_size < 0 else min(max_size, len(self._buffer))
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def write(self, data: bytes) -> int:
        """
        Send body bytes, preceded by the response head on the first call.

        Returns:
            What the transport accepted for this payload. Short writes are
            passed through, not retried.
        """
        if not self._response_headers_written:
            self._write_response_headers()

        return self.transport.write(data)

    def close(self) -> None:
        """
        Close the connection.

        A response that never wrote a body still gets its status line and
        headers before the transport closes.
        """
        if self.transport.closed:
            return

        if not self._response_headers_written:
            self._write_response_headers()

        self.transport.close()

    def __enter__(self) -> "HTTPSocket":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions

    # =========================================================================
    # ERRORS
    # =========================================================================

    def abort_with_error(self, error: HTTPSocketError) -> None:
        """
        Stop interpreting inbound bytes and report error.

        Called internally on parse failures. Owners call it directly for
        conditions only they can see, such as INCOMPLETE_HEADER when the
        peer disconnects mid-head. The first error wins; later calls are
        ignored. The transport is left open: the owner decides whether to
        send an error response and close.
        """
        if self._error is not None:
            return

        self._error = error
        self._error_string = error.message
        self._state = ParserState.ERRORED

        logger.debug(f"Aborting request: {self._error_string}")
        self.listener.on_error(self, error)

    # =========================================================================
    # TRANSPORT NOTIFICATIONS
    # =========================================================================

    def _on_ready_read(self) -> None:
        self._buffer.extend(self.transport.read_all())

        if self._state is ParserState.AWAITING_HEADERS:
            self._try_parse_request_headers()
        elif self._state is ParserState.HEADERS_COMPLETE:
            self.listener.on_ready_read(self)

    def _try_parse_request_headers(self) -> None:
        index = self._parser.find_header_end(self._buffer)
        if index == -1:
            return  # Wait for more data

        block = bytes(self._buffer[:index])
        del self._buffer[:index + len(HEADER_TERMINATOR)]

        try:
            self._parser.parse(block, self._request)
        except HTTPParseError as e:
            self.abort_with_error(e.error)
            return

        self._state = ParserState.HEADERS_COMPLETE
        self._request_headers_read = True
        logger.debug(f"Parsed request head: {self._request.method} {self._request.uri}")
        self.listener.on_request_headers_parsed(self)

    def _on_bytes_written(self, count: int) -> None:
        self.listener.on_bytes_written(self, count)

    def _on_disconnected(self) -> None:
        self.listener.on_disconnected(self)

    def _write_response_headers(self) -> None:
        head = self._response.to_bytes(legacy_framing=self.legacy_framing)
        self._response_headers_written = True

        accepted = self.transport.write(head)
        if accepted < len(head):
            logger.warning(f"Transport accepted {accepted} of {len(head)} response head bytes")
