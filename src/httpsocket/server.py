"""
=============================================================================
HTTP SOCKET SERVER
=============================================================================

Puts the pieces together: SocketServer accepts connections, each one gets
its own HTTPSocket and its own application listener.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     Per-connection wiring                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept() ──► SocketTransport ──► HTTPSocket ──► listener_factory() │
    │                                                                      │
    │   peer hangs up before CRLFCRLF  ──► abort_with_error(               │
    │   or stays idle too long               INCOMPLETE_HEADER)            │
    │                                   ──► sock.close()                   │
    │                                                                      │
    │   transport released              ──► access log entry               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The adapter never raises INCOMPLETE_HEADER on its own: it only parses
once a complete head is buffered. Noticing that a head will never
complete is this layer's job, as the owner of the connection.

=============================================================================
"""

import logging
from typing import Callable, Dict, Optional

from .access_log import AccessLog, log_access
from .config import ServerConfig
from .core.connection import SocketTransport
from .core.socket_server import SocketServer
from .handlers.echo import EchoHandler
from .http.adapter import HTTPSocket, HTTPSocketListener
from .http.errors import HTTPSocketError
from .http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

ListenerFactory = Callable[[], HTTPSocketListener]


class HTTPSocketServer:
    """
    Serves one HTTP exchange per TCP connection.

    Example:
        server = HTTPSocketServer(ServerConfig(port=8080), EchoHandler)
        server.run()  # Blocks until Ctrl+C

    Args:
        config: Server configuration. Validated on construction.
        listener_factory: Called once per connection to create the
                          application listener for its HTTPSocket.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        listener_factory: ListenerFactory = EchoHandler,
    ):
        self.config = config or ServerConfig()
        self.config.validate()
        self.listener_factory = listener_factory

        self._socket_server = SocketServer(self.config)
        self._sockets: Dict[str, HTTPSocket] = {}

    @property
    def address(self):
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        logger.info(f"Starting HTTP socket server on {self.config.host}:{self.config.port}")

        try:
            self._socket_server.start(
                self._handle_connection,
                on_release=self._handle_release,
                on_idle=self._handle_idle,
                on_hangup=self._handle_hangup,
            )
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._sockets.clear()
            logger.info("Server stopped")

    def shutdown(self):
        """Stop the server; run() returns shortly after."""
        self._socket_server.shutdown()

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_for_shutdown(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("httpsocket").setLevel(level)

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, transport: SocketTransport):
        sock = HTTPSocket(
            transport,
            self.listener_factory(),
            default_status_code=self.config.default_status_code,
            legacy_framing=self.config.legacy_framing,
        )
        self._sockets[transport.id] = sock

    def _handle_hangup(self, transport: SocketTransport):
        """Peer closed its side and the application did not close ours."""
        sock = self._sockets.get(transport.id)
        if sock is None:
            return

        self._report_incomplete_header(sock)
        if sock.error is not None and not sock.response_headers_written:
            # Listener left the error unanswered; don't let it go out as 200
            sock.set_response_status_code(sock.error.status_code)
        sock.close()

    def _handle_idle(self, transport: SocketTransport):
        sock = self._sockets.get(transport.id)
        if sock is None:
            transport.close()
            return

        self._report_incomplete_header(sock)
        if not sock.response_headers_written:
            sock.set_response_status_code(HTTPStatus.REQUEST_TIMEOUT)
        sock.close()

    def _report_incomplete_header(self, sock: HTTPSocket):
        if sock.request_headers_read or sock.error is not None:
            return

        logger.debug(f"[{sock.transport.id}] Connection ended before the request head completed")
        sock.abort_with_error(HTTPSocketError.INCOMPLETE_HEADER)

    def _handle_release(self, transport: SocketTransport):
        sock = self._sockets.pop(transport.id, None)
        if sock is None:
            return

        parsed = sock.request_headers_read
        entry = AccessLog.now(
            connection_id=transport.id,
            client_ip=transport.client_ip,
            method=sock.request_method if parsed else "-",
            uri=sock.request_uri if parsed else "-",
            status=sock.response_status_code if sock.response_headers_written else "-",
            bytes_in=transport.bytes_received,
            bytes_out=transport.bytes_sent,
            duration_ms=transport.age * 1000,
            error=sock.error.value if sock.error else None,
        )
        log_access(entry, self.config.log_format)


def create_server(config: Optional[ServerConfig] = None) -> HTTPSocketServer:
    """Create an echo server, configured from the environment by default."""
    return HTTPSocketServer(config or ServerConfig.from_env(), EchoHandler)
