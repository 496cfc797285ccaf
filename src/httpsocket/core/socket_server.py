"""
=============================================================================
SOCKET SERVER
=============================================================================

Accepts TCP connections and drives every SocketTransport from a single
selector loop.

=============================================================================
ONE THREAD, MANY CONNECTIONS
=============================================================================

HTTPSocket is event driven: it reacts to "bytes arrived" and never waits
for more. A selector loop delivers exactly those events, so each
connection is only ever touched from this one thread and needs no locks.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Selector loop                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   while running:                                                     │
    │       events = selector.select(timeout)                              │
    │       for each event:                                                │
    │           listening socket readable → accept() → new SocketTransport │
    │                                       → connection_handler(t)        │
    │           client readable           → t.handle_read()                │
    │           client writable           → t.handle_write()               │
    │           → update interest (READ / WRITE / release when closed)     │
    │       every second: idle sweep                                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Client sockets are registered by file descriptor number so they can
still be unregistered after the socket object has been closed.

=============================================================================
"""

import socket
import selectors
import signal
import logging
import threading
import time
from typing import Optional, Callable, Dict, Tuple

from ..config import ServerConfig
from .connection import SocketTransport, ConnectionState


logger = logging.getLogger(__name__)

IDLE_SWEEP_INTERVAL = 1.0

TransportHandler = Callable[[SocketTransport], None]


class SocketServer:
    """
    Low-level TCP server built on selectors.

    Usage:
        def on_connect(transport: SocketTransport):
            HTTPSocket(transport, MyListener())

        server = SocketServer(config)
        server.start(on_connect)  # Blocks until shutdown()

    Args:
        config: Host, port, backlog, buffer size and timeouts.
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._selector: Optional[selectors.BaseSelector] = None
        self._transports: Dict[int, SocketTransport] = {}
        self._bound_address: Optional[Tuple[str, int]] = None

        self._running = False
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

        self._on_connect: Optional[TransportHandler] = None
        self._on_release: Optional[TransportHandler] = None
        self._on_idle: Optional[TransportHandler] = None
        self._on_hangup: Optional[TransportHandler] = None

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (ip, port); reflects the real port when port 0 was used."""
        return self._bound_address or (self.config.host, self.config.port)

    @property
    def connection_count(self) -> int:
        return len(self._transports)

    def _create_socket(self) -> socket.socket:
        """
        Create and configure the listening socket.

        SO_REUSEADDR:  restart without "Address already in use" (TIME_WAIT)
        TCP_NODELAY:   don't hold back small writes (Nagle), lower latency
        non-blocking:  accept() must never stall the selector loop
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.setblocking(False)
        return sock

    def _setup_signals(self):
        """
        Setup SIGTERM/SIGINT handlers for graceful shutdown.

        Python only allows this from the main thread; when the server runs
        in a background thread (tests, embedding) the caller is expected
        to use shutdown() instead.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(
        self,
        on_connect: TransportHandler,
        on_release: Optional[TransportHandler] = None,
        on_idle: Optional[TransportHandler] = None,
        on_hangup: Optional[TransportHandler] = None,
    ):
        """
        Start accepting connections. Blocks until shutdown() is called.

        Args:
            on_connect: Called with each new transport, before any of its
                        events are dispatched. Must bind a consumer.
            on_release: Called once per transport after it closed and was
                        removed from the selector.
            on_idle: Called for a transport idle longer than
                     config.idle_timeout. Defaults to closing it.
            on_hangup: Called when the peer disconnected and the connection
                       is still open with nothing left to send. The
                       transport is closed afterwards either way.
        """
        self._on_connect = on_connect
        self._on_release = on_release
        self._on_idle = on_idle
        self._on_hangup = on_hangup

        self._socket = self._create_socket()
        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

        self._selector = selectors.DefaultSelector()
        self._selector.register(self._socket, selectors.EVENT_READ, data=None)

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        host, port = self._bound_address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._serve_loop()
        finally:
            self._cleanup()

    def _serve_loop(self):
        last_sweep = time.monotonic()

        while self._running:
            try:
                events = self._selector.select(timeout=self.config.select_timeout)
            except OSError as e:
                if self._running:
                    logger.error(f"Select error: {e}")
                break

            for key, mask in events:
                if key.data is None:
                    self._accept_clients()
                    continue

                transport: SocketTransport = key.data
                try:
                    if mask & selectors.EVENT_READ:
                        transport.handle_read()
                    if mask & selectors.EVENT_WRITE:
                        transport.handle_write()
                except Exception:
                    # A failing consumer takes down its own connection only
                    logger.exception(f"[{transport.id}] Error handling connection")
                    transport.abort()
                self._update_interest(transport)

            now = time.monotonic()
            if self.config.idle_timeout is not None and now - last_sweep >= IDLE_SWEEP_INTERVAL:
                self._sweep_idle()
                last_sweep = now

    def _accept_clients(self):
        """Accept every pending connection."""
        while True:
            try:
                client_socket, client_address = self._socket.accept()
            except BlockingIOError:
                return
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                return

            transport = SocketTransport(
                client_socket,
                client_address[:2],
                buffer_size=self.config.buffer_size,
            )
            logger.debug(f"[{transport.id}] Accepted connection from {client_address[0]}:{client_address[1]}")

            self._transports[transport.fileno] = transport
            self._selector.register(transport.fileno, selectors.EVENT_READ, data=transport)

            try:
                self._on_connect(transport)
            except Exception:
                logger.exception(f"[{transport.id}] Connection handler failed")
                transport.abort()

            self._update_interest(transport)

    def _update_interest(self, transport: SocketTransport):
        """Re-register for the events this transport needs next, or release it."""
        if transport.fileno not in self._transports:
            return

        if (transport.at_eof and transport.state is ConnectionState.OPEN
                and not transport.wants_write):
            # Peer is gone, everything queued went out, nobody closed yet
            self._hang_up(transport)

        if transport.closed:
            self._release(transport)
            return

        events = 0
        if not transport.at_eof and transport.state is ConnectionState.OPEN:
            events |= selectors.EVENT_READ
        if transport.wants_write:
            events |= selectors.EVENT_WRITE

        if not events:
            logger.debug(f"[{transport.id}] Nothing left to wait for, closing")
            transport.abort()
            self._release(transport)
            return

        try:
            self._selector.modify(transport.fileno, events, data=transport)
        except (KeyError, ValueError, OSError) as e:
            logger.warning(f"[{transport.id}] Could not update selector: {e}")
            transport.abort()
            self._release(transport)

    def _hang_up(self, transport: SocketTransport):
        if self._on_hangup is not None:
            try:
                self._on_hangup(transport)
            except Exception:
                logger.exception(f"[{transport.id}] Hang-up handler failed")

        if transport.state is ConnectionState.OPEN:
            transport.close()

    def _release(self, transport: SocketTransport):
        if self._transports.pop(transport.fileno, None) is None:
            return

        try:
            self._selector.unregister(transport.fileno)
        except (KeyError, ValueError):
            pass

        if not transport.closed:
            transport.abort()

        if self._on_release is not None:
            try:
                self._on_release(transport)
            except Exception:
                logger.exception(f"[{transport.id}] Release handler failed")

    def _sweep_idle(self):
        for transport in list(self._transports.values()):
            if transport.idle_time <= self.config.idle_timeout:
                continue

            logger.info(f"[{transport.id}] Idle for {transport.idle_time:.1f}s, closing")
            if transport.state is ConnectionState.CLOSING:
                transport.abort()  # Peer stopped reading our response
            elif self._on_idle is not None:
                try:
                    self._on_idle(transport)
                except Exception:
                    logger.exception(f"[{transport.id}] Idle handler failed")
                    transport.abort()
            else:
                transport.close()
            self._update_interest(transport)

    def shutdown(self):
        """
        Initiate graceful shutdown.

        Safe to call from a signal handler or another thread, and more
        than once.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        """Release every connection and the listening socket."""
        self._restore_signals()

        for transport in list(self._transports.values()):
            self._release(transport)

        if self._selector is not None:
            self._selector.close()
            self._selector = None

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the server to shut down.

        Returns:
            True if shutdown completed, False if timeout.
        """
        return self._shutdown_event.wait(timeout)
