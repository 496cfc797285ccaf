"""
Unit tests for HTTPSocket over an in-memory transport.
"""

import logging

import pytest

from httpsocket.core.transport import MemoryTransport
from httpsocket.http.adapter import HTTPSocket, HTTPSocketListener, ParserState
from httpsocket.http.errors import HTTPSocketError
from httpsocket.http.status_codes import HTTPStatus


REQUEST = (
    b"POST /upload?x=1 HTTP/1.1\r\n"
    b"Host: example.com\r\n"
    b"Content-Type: text/plain\r\n"
    b"X-Dup: first\r\n"
    b"x-dup: second\r\n"
    b"\r\n"
)
BODY = b"hello body"


def feed_in_chunks(transport: MemoryTransport, data: bytes, *split_points: int) -> None:
    start = 0
    for point in (*split_points, len(data)):
        if point > start:
            transport.feed(data[start:point])
        start = point


class TestRequestHeaders:
    """Tests for incremental request head parsing."""

    def test_head_in_one_chunk(self, transport, listener, http_socket):
        """Test a complete head parses and notifies once."""
        transport.feed(REQUEST)

        assert http_socket.request_headers_read
        assert http_socket.state is ParserState.HEADERS_COMPLETE
        assert http_socket.request_method == "POST"
        assert http_socket.request_uri == "/upload?x=1"
        assert http_socket.request_version == "HTTP/1.1"
        assert listener.events == [("headers",)]

    @pytest.mark.parametrize("split", range(1, len(REQUEST + BODY)))
    def test_every_split_point_gives_same_result(self, split):
        """Test results do not depend on where the stream was cut."""
        transport = MemoryTransport()
        sock = HTTPSocket(transport)

        feed_in_chunks(transport, REQUEST + BODY, split)

        assert sock.request_headers_read
        assert sock.request_method == "POST"
        assert sock.request_uri == "/upload?x=1"
        assert sock.request_header("content-type") == "text/plain"
        assert sock.read() == BODY

    def test_byte_at_a_time(self, transport, listener, http_socket):
        """Test feeding one byte per arrival."""
        for i in range(len(REQUEST)):
            transport.feed(REQUEST[i:i + 1])

        assert listener.count("headers") == 1
        assert http_socket.request_header("Host") == "example.com"

    def test_terminator_split_across_reads(self, transport, listener, http_socket):
        """Test a CRLFCRLF cut in the middle is still found."""
        transport.feed(b"GET / HTTP/1.0\r\n\r")
        assert not http_socket.request_headers_read

        transport.feed(b"\n")
        assert http_socket.request_headers_read
        assert listener.count("headers") == 1

    def test_waits_without_terminator(self, transport, listener, http_socket):
        """Test nothing happens until the terminator arrives."""
        transport.feed(b"GET / HTTP/1.1\r\nHost: x\r\n")

        assert http_socket.state is ParserState.AWAITING_HEADERS
        assert listener.events == []
        assert http_socket.error is None

    def test_header_lookup_case_insensitive_last_wins(self, transport, http_socket):
        """Test header lookup ignores case and keeps the last duplicate."""
        transport.feed(REQUEST)

        assert http_socket.request_header("HOST") == "example.com"
        assert http_socket.request_header("X-DUP") == "second"
        assert http_socket.request_header("X-Missing") == ""
        assert http_socket.request_header("X-Missing", "fallback") == "fallback"

    def test_request_header_names(self, transport, http_socket):
        """Test header names are listed lower-cased, once each."""
        transport.feed(REQUEST)

        assert http_socket.request_headers == ["host", "content-type", "x-dup"]

    def test_headers_parsed_fires_once(self, transport, listener, http_socket):
        """Test later arrivals only produce ready-read notifications."""
        transport.feed(REQUEST)
        transport.feed(b"a")
        transport.feed(b"b")

        assert listener.events == [("headers",), ("ready_read",), ("ready_read",)]

    def test_accessors_warn_before_headers(self, http_socket, caplog):
        """Test reading request fields too early warns and returns defaults."""
        with caplog.at_level(logging.WARNING):
            assert http_socket.request_method == ""
            assert http_socket.request_uri == ""
            assert http_socket.request_header("Host") == ""

        warnings = [r for r in caplog.records if r.getMessage() == "Request headers have not yet been read"]
        assert len(warnings) == 3


class TestRequestErrors:
    """Tests for parse failures."""

    @pytest.mark.parametrize("raw, error", [
        (b"GET /\r\n\r\n", HTTPSocketError.MALFORMED_REQUEST_LINE),
        (b"\r\n\r\n", HTTPSocketError.MALFORMED_REQUEST_LINE),
        (b"GET / HTTP/2.0\r\n\r\n", HTTPSocketError.INVALID_HTTP_VERSION),
        (b"GET / HTTP/1.1\r\nNoColon\r\n\r\n", HTTPSocketError.MALFORMED_REQUEST_HEADER),
    ])
    def test_error_kinds(self, transport, listener, http_socket, raw, error):
        """Test each bad head produces its error kind exactly once."""
        transport.feed(raw)

        assert http_socket.state is ParserState.ERRORED
        assert http_socket.error is error
        assert http_socket.error_string == error.message
        assert listener.events == [("error", error)]
        assert not http_socket.request_headers_read

    def test_error_leaves_transport_open(self, transport, http_socket):
        """Test the adapter does not close on error."""
        transport.feed(b"BAD\r\n\r\n")

        assert not transport.closed
        assert transport.events == []

    def test_no_interpretation_after_error(self, transport, listener, http_socket):
        """Test later bytes are never parsed and never notify."""
        transport.feed(b"GET / HTTP/9.9\r\n\r\n")
        transport.feed(b"GET / HTTP/1.1\r\n\r\nmore")

        assert listener.events == [("error", HTTPSocketError.INVALID_HTTP_VERSION)]
        assert http_socket.read() is None

    def test_abort_first_error_wins(self, transport, listener, http_socket):
        """Test only the first abort is recorded and reported."""
        http_socket.abort_with_error(HTTPSocketError.INCOMPLETE_HEADER)
        http_socket.abort_with_error(HTTPSocketError.MALFORMED_REQUEST_LINE)

        assert http_socket.error is HTTPSocketError.INCOMPLETE_HEADER
        assert http_socket.error_string == "Incomplete header received"
        assert listener.errors == [HTTPSocketError.INCOMPLETE_HEADER]

    def test_parse_error_then_abort_ignored(self, transport, listener, http_socket):
        """Test an owner abort after a parse error changes nothing."""
        transport.feed(b"x\r\n\r\n")
        http_socket.abort_with_error(HTTPSocketError.INCOMPLETE_HEADER)

        assert listener.errors == [HTTPSocketError.MALFORMED_REQUEST_LINE]

    def test_abort_after_headers_keeps_request(self, transport, listener, http_socket, caplog):
        """Test an owner abort after parsing leaves the request readable."""
        transport.feed(b"GET /x HTTP/1.1\r\n\r\nbody")
        http_socket.abort_with_error(HTTPSocketError.INCOMPLETE_HEADER)

        with caplog.at_level(logging.WARNING):
            assert http_socket.request_headers_read
            assert http_socket.request_uri == "/x"
            assert http_socket.read() == b"body"

        assert http_socket.state is ParserState.ERRORED
        assert http_socket.error is HTTPSocketError.INCOMPLETE_HEADER
        assert not any("not yet been read" in r.getMessage() for r in caplog.records)

    def test_arrivals_after_late_abort_are_buffered(self, transport, listener, http_socket):
        """Test bytes after a late abort stay readable but do not notify."""
        transport.feed(b"GET / HTTP/1.1\r\n\r\n")
        http_socket.abort_with_error(HTTPSocketError.MALFORMED_REQUEST_HEADER)
        transport.feed(b"late")

        assert listener.count("ready_read") == 0
        assert http_socket.read() == b"late"

    def test_no_error_initially(self, http_socket):
        """Test a fresh socket reports no error."""
        assert http_socket.error is None
        assert http_socket.error_string == ""


class TestBodyReading:
    """Tests for read() and friends."""

    def test_read_none_before_headers(self, transport, http_socket):
        """Test the stream is not readable until the head is parsed."""
        assert http_socket.read() is None

        transport.feed(b"GET / HTTP/1.1\r\n")
        assert http_socket.read() is None

    def test_body_after_head_in_same_chunk(self, transport, listener, http_socket):
        """Test body bytes that came with the head are readable."""
        transport.feed(b"GET / HTTP/1.1\r\nHost: x\r\n\r\nhello")

        assert listener.events == [("headers",)]
        assert http_socket.bytes_available() == 5
        assert http_socket.read() == b"hello"
        assert http_socket.read() == b""

    def test_read_max_size(self, transport, http_socket):
        """Test read() takes bytes from the front, at most max_size."""
        transport.feed(b"GET / HTTP/1.1\r\n\r\nabcdef")

        assert http_socket.read(2) == b"ab"
        assert http_socket.read(0) == b""
        assert http_socket.read(100) == b"cdef"

    def test_body_in_later_chunks(self, transport, listener, http_socket):
        """Test bytes after the head accumulate and notify."""
        transport.feed(b"GET / HTTP/1.1\r\n\r\n")
        transport.feed(b"part1-")
        transport.feed(b"part2")

        assert listener.count("ready_read") == 2
        assert http_socket.read() == b"part1-part2"

    def test_body_not_parsed_as_headers(self, transport, http_socket):
        """Test a second CRLFCRLF in the body is plain data."""
        transport.feed(b"GET / HTTP/1.1\r\n\r\nNot: a header\r\n\r\n")

        assert http_socket.request_headers == []
        assert http_socket.read() == b"Not: a header\r\n\r\n"

    def test_bytes_available_zero_before_headers(self, transport, http_socket):
        """Test buffered head bytes do not count as body."""
        transport.feed(b"GET / HTT")
        assert http_socket.bytes_available() == 0

    def test_at_end(self, transport, listener, http_socket):
        """Test at_end() needs both EOF and an empty buffer."""
        transport.feed(b"GET / HTTP/1.1\r\n\r\ntail")
        assert not http_socket.at_end()

        transport.feed_eof()
        assert listener.events[-1] == ("disconnected",)
        assert not http_socket.at_end()

        http_socket.read()
        assert http_socket.at_end()


class TestResponse:
    """Tests for the deferred response head."""

    def test_default_status_before_first_body_byte(self, transport, http_socket):
        """Test the head is written once, right before the body."""
        transport.feed(b"GET / HTTP/1.1\r\n\r\n")

        http_socket.write(b"abc")
        http_socket.write(b"def")

        assert transport.events == [
            ("write", b"HTTP/1.0 200 OK\r\n\r\n"),
            ("write", b"abc"),
            ("write", b"def"),
        ]
        assert http_socket.response_headers_written

    def test_close_without_body_writes_head(self, transport, http_socket):
        """Test close() alone still emits the head, then closes."""
        http_socket.set_response_status_code("204 No Content")
        http_socket.close()

        assert transport.events == [("write", b"HTTP/1.0 204 No Content\r\n\r\n"), ("close",)]

    def test_close_twice(self, transport, http_socket):
        """Test a second close() does nothing."""
        http_socket.close()
        http_socket.close()

        assert transport.events == [("write", b"HTTP/1.0 200 OK\r\n\r\n"), ("close",)]

    def test_close_after_write_does_not_repeat_head(self, transport, http_socket):
        """Test close() after write() only closes."""
        http_socket.write(b"x")
        http_socket.close()

        assert [e[0] for e in transport.events] == ["write", "write", "close"]

    def test_headers_serialized_in_order(self, transport, http_socket):
        """Test custom status and headers appear in insertion order."""
        http_socket.set_response_status_code("404 Not Found")
        http_socket.set_response_header("Content-Type", "text/plain")
        http_socket.set_response_header("Content-Length", "2")
        http_socket.write(b"no")

        assert bytes(transport.written) == (
            b"HTTP/1.0 404 Not Found\r\n"
            b"Content-Type: text/plain\r\n"
            b"Content-Length: 2\r\n"
            b"\r\n"
            b"no"
        )

    def test_numeric_status(self, http_socket):
        """Test ints and HTTPStatus members are rendered with their phrase."""
        http_socket.set_response_status_code(405)
        assert http_socket.response_status_code == "405 Method Not Allowed"

        http_socket.set_response_status_code(HTTPStatus.BAD_REQUEST)
        assert http_socket.response_status_code == "400 Bad Request"

    def test_numeric_status_without_phrase(self, http_socket):
        """Test codes missing from HTTPStatus are still accepted."""
        http_socket.set_response_status_code(418)
        assert http_socket.response_status_code == "418 Unknown"

        http_socket.close()
        assert http_socket.transport.written == b"HTTP/1.0 418 Unknown\r\n\r\n"

    def test_line_breaks_rejected(self, transport, http_socket):
        """Test CR/LF cannot smuggle extra lines into the head."""
        with pytest.raises(ValueError):
            http_socket.set_response_header("X-Bad", "a\r\nInjected: 1")
        with pytest.raises(ValueError):
            http_socket.set_response_header("X-Bad\n", "a")
        with pytest.raises(ValueError):
            http_socket.set_response_status_code("200 OK\r\nInjected: 1")

        http_socket.close()
        assert transport.written == b"HTTP/1.0 200 OK\r\n\r\n"

    def test_line_break_in_default_status_rejected(self, transport):
        """Test the constructor default status is checked too."""
        with pytest.raises(ValueError):
            HTTPSocket(transport, default_status_code="200 OK\nX: 1")

    def test_custom_default_status(self):
        """Test the constructor default status is used when none is set."""
        transport = MemoryTransport()
        sock = HTTPSocket(transport, default_status_code="503 Service Unavailable")
        sock.close()

        assert transport.written.startswith(b"HTTP/1.0 503 Service Unavailable\r\n")

    def test_response_frozen_after_head_written(self, transport, http_socket, caplog):
        """Test status and header changes after the head went out are ignored."""
        http_socket.set_response_header("X-Before", "1")
        http_socket.write(b"body")

        with caplog.at_level(logging.WARNING):
            http_socket.set_response_status_code("500 Internal Server Error")
            http_socket.set_response_header("X-After", "2")

        assert http_socket.response_status_code == "200 OK"
        assert http_socket.response_headers == {"X-Before": "1"}
        warnings = [r for r in caplog.records if r.getMessage() == "Response headers have already been written"]
        assert len(warnings) == 2

    def test_response_headers_is_copy(self, http_socket):
        """Test mutating the returned dict does not touch the response."""
        http_socket.response_headers["X-Sneaky"] = "1"
        assert http_socket.response_headers == {}

    def test_write_returns_transport_count(self, transport, http_socket):
        """Test short writes are passed through, not retried."""
        http_socket.write(b"")
        transport.write_limit = 2

        assert http_socket.write(b"hello") == 2
        assert transport.events[-1] == ("write", b"he")

    def test_write_before_headers_read(self, transport, http_socket):
        """Test responding before the request arrived is allowed."""
        assert http_socket.write(b"early") == 5
        assert transport.written == b"HTTP/1.0 200 OK\r\n\r\nearly"

    def test_legacy_framing(self):
        """Test legacy framing is applied to the emitted head."""
        transport = MemoryTransport()
        sock = HTTPSocket(transport, legacy_framing=True)
        sock.set_response_header("A", "1")
        sock.set_response_header("B", "2")
        sock.write(b"body")

        assert transport.written == b"HTTP/1.0 200 OK\r\nA: 1B: 2body"

    def test_bytes_written_forwarded(self, transport, listener, http_socket):
        """Test transport delivery reports reach the listener."""
        http_socket.write(b"abc")
        transport.flush()

        assert listener.events == [("bytes_written", len(b"HTTP/1.0 200 OK\r\n\r\n") + 3)]

    def test_context_manager_closes(self, transport):
        """Test leaving the with-block closes the socket."""
        with HTTPSocket(transport) as sock:
            sock.write(b"x")

        assert transport.closed
        assert transport.events[-1] == ("close",)


class TestListener:
    """Tests for listener wiring."""

    def test_default_listener_is_noop(self, transport):
        """Test a socket without listener tolerates every event."""
        sock = HTTPSocket(transport)

        transport.feed(b"GET / HTTP/1.1\r\n\r\n")
        transport.feed(b"more")
        transport.feed_eof()
        sock.write(b"x")
        transport.flush()

        assert sock.read() == b"more"

    def test_respond_from_headers_callback(self):
        """Test a listener can answer and close inside the callback."""
        class Hello(HTTPSocketListener):
            def on_request_headers_parsed(self, sock):
                sock.set_response_header("Content-Type", "text/plain")
                sock.write(f"you asked for {sock.request_uri}".encode())
                sock.close()

        transport = MemoryTransport()
        HTTPSocket(transport, Hello())
        transport.feed(b"GET /thing HTTP/1.0\r\n\r\n")

        assert transport.written == (
            b"HTTP/1.0 200 OK\r\nContent-Type: text/plain\r\n\r\nyou asked for /thing"
        )
        assert transport.closed
