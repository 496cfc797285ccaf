"""
=============================================================================
CORE TRANSPORT COMPONENTS
=============================================================================

The byte-stream plumbing underneath HTTPSocket:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  Transport        what HTTPSocket needs: read_all / write / close   │
    │                   plus ready-read, bytes-written, disconnected      │
    ├─────────────────────────────────────────────────────────────────────┤
    │  MemoryTransport  bytes in and out of Python objects (tests)        │
    │  SocketTransport  one non-blocking TCP client socket                │
    │  SocketServer     selector loop: accept, dispatch, release          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .transport import Transport, MemoryTransport
from .connection import SocketTransport, ConnectionState
from .socket_server import SocketServer

__all__ = [
    "Transport",        # Abstract byte stream consumed by HTTPSocket
    "MemoryTransport",  # In-memory stream for tests
    "SocketTransport",  # Non-blocking TCP client socket
    "ConnectionState",  # SocketTransport lifecycle states
    "SocketServer",     # Accepts connections, drives the selector loop
]
