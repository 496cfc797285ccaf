"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Generator, List, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpsocket import HTTPSocketServer, ServerConfig
from httpsocket.core import MemoryTransport
from httpsocket.handlers import EchoHandler
from httpsocket.http import HTTPSocket, HTTPSocketListener, HTTPSocketError


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request head."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    head = (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    )
    return head + body


class RecordingListener(HTTPSocketListener):
    """Listener that records every notification in arrival order."""

    def __init__(self):
        self.events: List[Tuple] = []

    def on_request_headers_parsed(self, sock):
        self.events.append(("headers",))

    def on_ready_read(self, sock):
        self.events.append(("ready_read",))

    def on_error(self, sock, error):
        self.events.append(("error", error))

    def on_bytes_written(self, sock, count):
        self.events.append(("bytes_written", count))

    def on_disconnected(self, sock):
        self.events.append(("disconnected",))

    def count(self, name: str) -> int:
        return sum(1 for event in self.events if event[0] == name)

    @property
    def errors(self) -> List[HTTPSocketError]:
        return [event[1] for event in self.events if event[0] == "error"]


@pytest.fixture
def transport() -> MemoryTransport:
    return MemoryTransport()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def http_socket(transport: MemoryTransport, listener: RecordingListener) -> HTTPSocket:
    """HTTPSocket over an in-memory transport with a recording listener."""
    return HTTPSocket(transport, listener)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class despite the name

    def __init__(self, server: HTTPSocketServer, port: int):
        self.server = server
        self.port = port
        self._thread: threading.Thread = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"port": self.port},
            daemon=True
        )
        self._thread.start()

        # Wait for server to be ready
        for _ in range(50):  # 5 seconds max
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.connect(('127.0.0.1', self.port))
                    return
            except ConnectionRefusedError:
                time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, payload: bytes, half_close: bool = True, timeout: float = 5.0) -> bytes:
        """Send payload and return everything the server sends back."""
        with socket.create_connection(('127.0.0.1', self.port), timeout=timeout) as s:
            s.sendall(payload)
            if half_close:
                s.shutdown(socket.SHUT_WR)
            return recv_all(s)


def recv_all(s: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = s.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


@pytest.fixture
def test_server(free_port: int) -> Generator[TestServer, None, None]:
    """Echo server on a free port."""
    server = HTTPSocketServer(ServerConfig(
        host="127.0.0.1",
        port=free_port,
        idle_timeout=2.0,
        log_level="WARNING",
    ), EchoHandler)

    test_srv = TestServer(server, free_port)
    test_srv.start()

    yield test_srv

    test_srv.stop()
