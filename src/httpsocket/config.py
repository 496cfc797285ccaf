"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the demo server and the sockets it creates.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpsocket --port 3000                          │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTPSOCKET_PORT=3000 python -m httpsocket                 │
    │                                                                      │
    │   3. Defaults (this dataclass)                                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

HTTPSocket itself takes its two knobs (default status, legacy framing) as
constructor arguments, so it can be used without a ServerConfig at all.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """
    Configuration for HTTPSocketServer.

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, select_timeout, idle_timeout

    HTTP SETTINGS
    - default_status_code, legacy_framing

    LOGGING
    - log_level, log_format
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces
    """

    port: int = 8080
    """The port number to listen on. 0 lets the OS pick a free one."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    select_timeout: float = 0.5
    """
    How long one selector wait may block, in seconds.
    Bounds how quickly shutdown() and the idle sweep are noticed.
    """

    idle_timeout: Optional[float] = 30.0
    """
    Close connections with no traffic for this many seconds.
    None disables the sweep. A connection that times out before its
    request head completed is reported as INCOMPLETE_HEADER.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    default_status_code: str = "200 OK"
    """Status sent when the application never sets one."""

    legacy_framing: bool = False
    """
    Serialize response heads without header-line CRLFs and without the
    blank line before the body. Byte-compatibility mode only: the output
    is not valid HTTP.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """
    Access log format: 'json' or 'text'.
    JSON is better for log aggregators, text for humans.
    """

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        HTTPSOCKET_HOST            Server host (default: 127.0.0.1)
        HTTPSOCKET_PORT            Server port (default: 8080)
        HTTPSOCKET_BUFFER_SIZE     recv() size (default: 8192)
        HTTPSOCKET_IDLE_TIMEOUT    Idle seconds, "none" disables (default: 30)
        HTTPSOCKET_LEGACY_FRAMING  1/true/yes/on enables (default: off)
        HTTPSOCKET_LOG_LEVEL       Logging level (default: INFO)
        HTTPSOCKET_LOG_FORMAT      text or json (default: text)
        """
        idle = os.getenv("HTTPSOCKET_IDLE_TIMEOUT", "30")
        return cls(
            host=os.getenv("HTTPSOCKET_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTPSOCKET_PORT", "8080")),
            buffer_size=int(os.getenv("HTTPSOCKET_BUFFER_SIZE", "8192")),
            idle_timeout=None if idle.lower() == "none" else float(idle),
            legacy_framing=os.getenv("HTTPSOCKET_LEGACY_FRAMING", "").lower() in _TRUTHY,
            log_level=os.getenv("HTTPSOCKET_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTPSOCKET_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Fail fast at startup rather than on the first connection.

        Raises:
            ValueError: Describing the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.select_timeout <= 0:
            raise ValueError("select_timeout must be > 0")

        if self.idle_timeout is not None and self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be > 0")

        if not self.default_status_code.strip():
            raise ValueError("default_status_code must not be empty")

        if "\r" in self.default_status_code or "\n" in self.default_status_code:
            raise ValueError("default_status_code must not contain line breaks")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}. Must be 'text' or 'json'.")
