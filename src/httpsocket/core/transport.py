"""
=============================================================================
TRANSPORTS
=============================================================================

A Transport is the raw byte stream underneath an HTTPSocket. The adapter
never touches a socket directly; it only needs four things:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     What HTTPSocket needs from below                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   read_all()   → every byte that has arrived since the last call     │
    │   write(data)  → number of bytes the stream accepted                 │
    │   close()      → end the connection                                  │
    │                                                                      │
    │   and three notifications, installed with bind():                    │
    │                                                                      │
    │   on_ready_read()          "new bytes arrived, call read_all()"      │
    │   on_bytes_written(count)  "count bytes reached the peer"            │
    │   on_disconnected()        "the peer closed its side"                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Two implementations ship with the package:

    MemoryTransport  (this module)   bytes go in and out of Python objects,
                                     used by tests and tooling
    SocketTransport  (connection.py) a non-blocking TCP socket driven by
                                     SocketServer's selector loop

Notifications are plain synchronous calls. Whoever owns the transport
(the selector loop, or a test calling feed()) is the single thread of
control for the connection.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional


ReadyReadCallback = Callable[[], None]
BytesWrittenCallback = Callable[[int], None]
DisconnectedCallback = Callable[[], None]


class Transport(ABC):
    """Byte-stream capability consumed by HTTPSocket."""

    def __init__(self):
        self._on_ready_read: Optional[ReadyReadCallback] = None
        self._on_bytes_written: Optional[BytesWrittenCallback] = None
        self._on_disconnected: Optional[DisconnectedCallback] = None

        # Set once the peer has closed its sending side
        self.at_eof = False

    def bind(
        self,
        on_ready_read: ReadyReadCallback,
        on_bytes_written: Optional[BytesWrittenCallback] = None,
        on_disconnected: Optional[DisconnectedCallback] = None,
    ) -> None:
        """Install the callbacks of the single consumer of this stream."""
        self._on_ready_read = on_ready_read
        self._on_bytes_written = on_bytes_written
        self._on_disconnected = on_disconnected

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once close() has fully taken effect."""

    @abstractmethod
    def read_all(self) -> bytes:
        """Return and drain every byte received so far."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """
        Hand data to the stream.

        Returns:
            Number of bytes accepted, possibly fewer than len(data).

        Raises:
            ConnectionError: If the transport is already closed.
        """

    @abstractmethod
    def close(self) -> None:
        """Close the stream. Safe to call more than once."""

    # =========================================================================
    # NOTIFICATIONS: called by subclasses when the stream changes
    # =========================================================================

    def _notify_ready_read(self) -> None:
        if self._on_ready_read is not None:
            self._on_ready_read()

    def _notify_bytes_written(self, count: int) -> None:
        if self._on_bytes_written is not None:
            self._on_bytes_written(count)

    def _notify_disconnected(self) -> None:
        if self._on_disconnected is not None:
            self._on_disconnected()


class MemoryTransport(Transport):
    """
    In-memory Transport.

    Inbound bytes are pushed with feed(); outbound bytes collect in
    .written. Every write and close is also appended to .events, which
    makes the relative order of header bytes, body bytes and close easy
    to assert on.

    Example:
        transport = MemoryTransport()
        sock = HTTPSocket(transport, listener)
        transport.feed(b"GET / HTTP/1.0\\r\\n\\r\\n")
        sock.write(b"hi")
        assert transport.events == [("write", b"HTTP/1.0 200 OK\\r\\n\\r\\n"),
                                    ("write", b"hi")]

    Args:
        write_limit: Maximum bytes accepted per write() call. None accepts
                     everything. Useful for simulating back-pressure.
    """

    def __init__(self, write_limit: Optional[int] = None):
        super().__init__()
        self.write_limit = write_limit
        self.written = bytearray()
        self.events: list[tuple] = []
        self._inbound = bytearray()
        self._unflushed = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, data: bytes) -> None:
        """Deliver data as if it had just arrived from the peer."""
        if self._closed:
            raise ConnectionError("Cannot feed a closed transport")
        self._inbound.extend(data)
        self._notify_ready_read()

    def feed_eof(self) -> None:
        """Simulate the peer closing its side of the connection."""
        self.at_eof = True
        self._notify_disconnected()

    def read_all(self) -> bytes:
        data = bytes(self._inbound)
        self._inbound.clear()
        return data

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ConnectionError("Write on closed transport")

        accepted = bytes(data) if self.write_limit is None else bytes(data[:self.write_limit])
        self.written.extend(accepted)
        self.events.append(("write", accepted))
        self._unflushed += len(accepted)
        return len(accepted)

    def flush(self) -> int:
        """Pretend everything written so far reached the peer."""
        count, self._unflushed = self._unflushed, 0
        if count:
            self._notify_bytes_written(count)
        return count

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.events.append(("close",))
