"""
=============================================================================
HTTPSOCKET - One HTTP/1.x Exchange Over A Raw Byte Stream
=============================================================================

httpsocket turns a connected TCP stream into a single HTTP request and
response. Bytes arrive in arbitrary chunks; the request head becomes
available as soon as its CRLFCRLF terminator does; the response body is
streamed with write(), and the status line and headers are emitted
automatically, exactly once, right before the first body byte (or on
close).

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpsocket/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m httpsocket)
    ├── server.py            # HTTPSocketServer: one HTTPSocket per connection
    ├── config.py            # ServerConfig dataclass
    ├── access_log.py        # Structured per-connection access log
    ├── core/                # Byte-stream plumbing
    │   ├── transport.py     # Transport ABC, MemoryTransport
    │   ├── connection.py    # SocketTransport
    │   └── socket_server.py # Selector-based accept/dispatch loop
    ├── http/                # HTTP framing
    │   ├── adapter.py       # HTTPSocket, HTTPSocketListener
    │   ├── request.py       # Request head parsing
    │   ├── response.py      # Response head serialization
    │   ├── errors.py        # HTTPSocketError, HTTPParseError
    │   └── status_codes.py  # HTTPStatus
    └── handlers/
        └── echo.py          # EchoHandler demo application

=============================================================================
QUICK START
=============================================================================

    from httpsocket import HTTPSocketServer, ServerConfig
    from httpsocket.http import HTTPSocketListener

    class Hello(HTTPSocketListener):
        def on_request_headers_parsed(self, sock):
            sock.set_response_header("Content-Type", "text/plain")
            sock.write(b"Hello, World!")
            sock.close()

        def on_error(self, sock, error):
            sock.set_response_status_code(error.status_code)
            sock.close()

    HTTPSocketServer(ServerConfig(port=8080), Hello).run()

=============================================================================
SCOPE
=============================================================================

One request per connection, HTTP/1.0 and HTTP/1.1 request lines. No
keep-alive, pipelining, chunked encoding, TLS or body parsing.

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPSocketServer, create_server
from .config import ServerConfig
from .http.adapter import HTTPSocket, HTTPSocketListener
from .http.errors import HTTPSocketError

__all__ = [
    "HTTPSocket",
    "HTTPSocketListener",
    "HTTPSocketError",
    "HTTPSocketServer",
    "ServerConfig",
    "create_server",
    "__version__",
]
