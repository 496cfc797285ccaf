"""
=============================================================================
ECHO HANDLER
=============================================================================

A small application that shows the whole HTTPSocket contract in use:

    GET /hello HTTP/1.1                 HTTP/1.0 200 OK
    Host: localhost           ──►       Content-Type: text/plain; charset=utf-8
    Content-Length: 5                   Content-Length: 60
                                        Connection: close
    hello
                                        GET /hello HTTP/1.1
                                        host: localhost
                                        content-length: 5

                                        hello

1. on_request_headers_parsed: read Content-Length, take whatever body bytes
   arrived together with the head
2. on_ready_read: keep collecting until the declared length is reached
3. respond once, then close
4. on_error: answer with the error's status and message, then close

=============================================================================
"""

import logging

from ..http.adapter import HTTPSocket, HTTPSocketListener
from ..http.errors import HTTPSocketError


logger = logging.getLogger(__name__)


class EchoHandler(HTTPSocketListener):
    """Echoes the request head and body back as text/plain."""

    def __init__(self):
        self._body = bytearray()
        self._expected = 0
        self._responded = False

    def on_request_headers_parsed(self, sock: HTTPSocket) -> None:
        try:
            self._expected = max(0, int(sock.request_header("Content-Length", "0")))
        except ValueError:
            self._expected = 0

        # Body bytes that came in the same read as the head are already buffered
        self._collect(sock)

    def on_ready_read(self, sock: HTTPSocket) -> None:
        self._collect(sock)

    def on_disconnected(self, sock: HTTPSocket) -> None:
        if sock.request_headers_read and not self._responded:
            logger.debug(f"Peer sent {len(self._body)} of {self._expected} body bytes")
            self._respond(sock)

    def on_error(self, sock: HTTPSocket, error: HTTPSocketError) -> None:
        if self._responded:
            return
        self._responded = True

        body = f"{sock.error_string}\n".encode("utf-8")
        sock.set_response_status_code(error.status_code)
        self._send(sock, body)

    def _collect(self, sock: HTTPSocket) -> None:
        if self._responded:
            return

        self._body.extend(sock.read() or b"")
        if len(self._body) >= self._expected:
            self._respond(sock)

    def _respond(self, sock: HTTPSocket) -> None:
        self._responded = True

        lines = [f"{sock.request_method} {sock.request_uri} {sock.request_version}"]
        lines.extend(f"{name}: {sock.request_header(name)}" for name in sock.request_headers)
        text = "\n".join(lines) + "\n\n"

        self._send(sock, text.encode("utf-8") + bytes(self._body[:self._expected]))

    def _send(self, sock: HTTPSocket, body: bytes) -> None:
        sock.set_response_header("Content-Type", "text/plain; charset=utf-8")
        sock.set_response_header("Content-Length", str(len(body)))
        sock.set_response_header("Connection", "close")
        sock.write(body)
        sock.close()
