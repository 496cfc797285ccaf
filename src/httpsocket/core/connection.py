"""
=============================================================================
SOCKET TRANSPORT
=============================================================================

Wraps one accepted, non-blocking client socket as a Transport.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

    Client sends HTTP request:
        GET /api/users HTTP/1.1\r\n
        Host: localhost\r\n
        \r\n

    Server might receive:
        First recv():  "GET /api/use"    (incomplete!)
        Second recv(): "rs HTTP/1.1\r\n" (rest)
        Third recv():  "Host: ...\r\n\r" (headers, terminator split!)
        Fourth recv(): "\n"

This class does not try to find message boundaries. Every recv() is
handed upward as-is through on_ready_read(); HTTPSocket buffers and looks
for the CRLFCRLF delimiter itself.

=============================================================================
NON-BLOCKING I/O
=============================================================================

The socket never blocks. SocketServer's selector tells us when it is
readable or writable, and we do exactly one system call per event:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    SocketTransport event flow                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   EVENT_READ  → handle_read()  → recv() ─┬─ data → on_ready_read()   │
    │                                          └─ b""  → on_disconnected() │
    │                                                                      │
    │   write(data) → queued in _outbound, returns len(data)               │
    │                                                                      │
    │   EVENT_WRITE → handle_write() → send() → on_bytes_written(sent)     │
    │                                                                      │
    │   close()     → CLOSING until _outbound drains, then CLOSED          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Queueing writes means the response head and body are never lost to a
short send(); the selector loop keeps calling handle_write() while
wants_write is True.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum

from .transport import Transport


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """SocketTransport lifecycle states."""
    OPEN = "open"          # Reading and writing
    CLOSING = "closing"    # close() called, flushing queued bytes
    CLOSED = "closed"      # Socket released


class SocketTransport(Transport):
    """
    Transport over a connected TCP socket.

    Attributes:
        socket: The client socket (switched to non-blocking).
        address: Client's (ip, port) tuple.
        id: Short unique connection identifier (for logging).
        fileno: Descriptor captured at construction; stays valid as a
                selector key after the socket is closed.
        state: Current ConnectionState.
        created_at: Timestamp when the connection was accepted.
        last_activity: Timestamp of the last successful recv/send.
        bytes_received: Total inbound bytes.
        bytes_sent: Total bytes that actually left through send().
    """

    def __init__(self, sock: socket.socket, address: tuple[str, int], buffer_size: int = 8192):
        super().__init__()
        self.socket = sock
        self.address = address
        self.buffer_size = buffer_size

        self.id = str(uuid.uuid4())[:8]
        self.fileno = sock.fileno()
        self.state = ConnectionState.OPEN
        self.created_at = time.time()
        self.last_activity = self.created_at
        self.bytes_received = 0
        self.bytes_sent = 0

        self._inbound = bytearray()
        self._outbound = bytearray()

        self.socket.setblocking(False)

    # =========================================================================
    # PROPERTIES: Convenient accessors
    # =========================================================================

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def client_port(self) -> int:
        """Get the client port."""
        return self.address[1]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    @property
    def idle_time(self) -> float:
        """Get time since last activity in seconds."""
        return time.time() - self.last_activity

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    @property
    def wants_write(self) -> bool:
        """True while queued outbound bytes are waiting for the socket."""
        return bool(self._outbound)

    # =========================================================================
    # READING
    # =========================================================================

    def handle_read(self) -> None:
        """
        Perform one recv() after the selector reported the socket readable.

        An empty recv() means the peer closed its sending side; that is
        reported once through on_disconnected().
        """
        if self.state is ConnectionState.CLOSED or self.at_eof:
            return

        try:
            chunk = self.socket.recv(self.buffer_size)
        except BlockingIOError:
            return  # Spurious wakeup
        except (ConnectionResetError, OSError) as e:
            # Client disconnected abruptly
            logger.debug(f"[{self.id}] Receive failed: {e}")
            chunk = b""

        if not chunk:
            self.at_eof = True
            logger.debug(f"[{self.id}] Peer closed connection")
            self._notify_disconnected()
            return

        self.last_activity = time.time()
        self.bytes_received += len(chunk)
        self._inbound.extend(chunk)
        self._notify_ready_read()

    def read_all(self) -> bytes:
        data = bytes(self._inbound)
        self._inbound.clear()
        return data

    # =========================================================================
    # WRITING
    # =========================================================================

    def write(self, data: bytes) -> int:
        """
        Queue data for sending.

        Always accepts the whole payload; the bytes leave in handle_write().
        """
        if self.state is not ConnectionState.OPEN:
            raise ConnectionError(f"[{self.id}] Write on {self.state.value} connection")

        self._outbound.extend(data)
        return len(data)

    def handle_write(self) -> None:
        """Perform one send() after the selector reported the socket writable."""
        if not self._outbound or self.state is ConnectionState.CLOSED:
            return

        try:
            sent = self.socket.send(self._outbound)
        except BlockingIOError:
            return
        except (ConnectionResetError, BrokenPipeError, OSError) as e:
            # Client is gone, nothing queued can be delivered anymore
            logger.warning(f"[{self.id}] Send failed: {e}")
            self._outbound.clear()
            self._release()
            return

        del self._outbound[:sent]
        self.bytes_sent += sent
        self.last_activity = time.time()
        self._notify_bytes_written(sent)

        if self.state is ConnectionState.CLOSING and not self._outbound:
            self._release()

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close the connection once every queued byte has been sent.

        Further write() calls fail immediately. If nothing is queued the
        socket is released right away.
        """
        if self.state is not ConnectionState.OPEN:
            return

        self.state = ConnectionState.CLOSING
        if not self._outbound:
            self._release()

    def abort(self) -> None:
        """Drop queued bytes and release the socket now."""
        self._outbound.clear()
        self._release()

    def _release(self) -> None:
        """
        TCP shutdown sequence.

        1. shutdown(SHUT_WR): send FIN, the client sees end of response
        2. drain whatever the client still sent, so close() doesn't RST
        3. close(): release the file descriptor
        """
        if self.state is ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected, that's fine

        try:
            while self.socket.recv(self.buffer_size):
                pass  # Discard any remaining data
        except OSError:
            pass  # BlockingIOError once the kernel buffer is empty

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed "
            f"({self.bytes_received} bytes in, {self.bytes_sent} bytes out)"
        )
