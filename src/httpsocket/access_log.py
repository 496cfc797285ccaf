"""
=============================================================================
ACCESS LOG
=============================================================================

One structured entry per connection, written when the connection is
released.

    TEXT FORMAT (default):
        127.0.0.1 - - [2026-10-19T12:00:00+00:00] "GET /foo" 200 OK 37 1.42ms

    JSON FORMAT (for log aggregators):
        {"connection_id": "a1b2c3d4", "method": "GET", "uri": "/foo", ...}

Entries go to the "httpsocket.access" logger, so they can be routed
separately from diagnostic output:

    logging.getLogger("httpsocket.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional


logger = logging.getLogger("httpsocket.access")


@dataclass
class AccessLog:
    """
    Structured log entry for one connection.

    method and uri are "-" when the request head never parsed; error then
    holds the HTTPSocketError value.
    """

    connection_id: str
    client_ip: str
    method: str
    uri: str
    status: str
    bytes_in: int
    bytes_out: int
    duration_ms: float
    timestamp: str
    error: Optional[str] = None

    @classmethod
    def now(cls, **fields) -> "AccessLog":
        """Build an entry stamped with the current UTC time."""
        return cls(timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"), **fields)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Apache-style one-liner."""
        line = (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.uri}" {self.status} '
            f'{self.bytes_out} {self.duration_ms:.2f}ms'
        )
        if self.error:
            line += f" error={self.error}"
        return line


def log_access(entry: AccessLog, log_format: str = "text") -> None:
    """Emit entry on the access logger in the configured format."""
    if log_format == "json":
        logger.info(json.dumps(entry.to_dict()))
    else:
        logger.info(entry.to_text())
