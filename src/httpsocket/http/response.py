"""
=============================================================================
HTTP RESPONSE HEAD
=============================================================================

Holds the response status and headers until the moment they must go out,
and serializes them to bytes.

=============================================================================
DEFERRED HEADER WRITE
=============================================================================

An application streams a response body through HTTPSocket.write(). The
status line and headers have to precede the body on the wire, but the
application may keep adjusting them right up until the first body byte:

    sock.set_response_status_code("404 Not Found")
    sock.set_response_header("Content-Type", "text/plain")
    sock.write(b"nope")      ← head serialized HERE, then the body
    sock.write(b"!")         ← body only
    sock.close()

If the application never writes a body, close() serializes the head
instead, so every connection still gets a status line.

=============================================================================
SERIALIZATION FORMAT
=============================================================================

    HTTP/1.0 200 OK\r\n               ← version is always HTTP/1.0
    Content-Type: text/plain\r\n      ← insertion order
    X-Custom: value\r\n
    \r\n                              ← blank line, body follows

legacy_framing=True reproduces an older byte layout in which header lines
are concatenated without CRLF terminators and no blank line is sent:

    HTTP/1.0 200 OK\r\nContent-Type: text/plainX-Custom: value

That output is not a valid HTTP message. It exists only for
byte-compatibility checks against peers that expect it.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict


RESPONSE_VERSION = "HTTP/1.0"
DEFAULT_STATUS_CODE = "200 OK"


def check_head_text(text: str, what: str) -> str:
    """
    Reject CR or LF in text destined for the response head.

    A line break inside a status or header would end the line early and
    let the rest be read as extra headers or body.

    Raises:
        ValueError: If text contains "\\r" or "\\n".
    """
    if "\r" in text or "\n" in text:
        raise ValueError(f"Line break in response {what}: {text!r}")
    return text


@dataclass
class ResponseHead:
    """
    Response status and headers awaiting serialization.

    Attributes:
        status_code: Free-form status text, e.g. "200 OK" or "404 Not Found".
        headers: Header name → value, serialized in insertion order.
                 Setting an existing name replaces its value in place.
    """

    status_code: str = DEFAULT_STATUS_CODE
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def status_line(self) -> str:
        """The first line of the response, without its CRLF."""
        return f"{RESPONSE_VERSION} {self.status_code}"

    def set_header(self, name: str, value: str) -> "ResponseHead":
        """
        Set a header, returning self for chaining.

        Raises:
            ValueError: If name or value contains CR or LF.
        """
        self.headers[check_head_text(name, "header name")] = check_head_text(value, "header value")
        return self

    def to_bytes(self, legacy_framing: bool = False) -> bytes:
        """
        Serialize the status line and headers.

        Args:
            legacy_framing: Omit per-header CRLFs and the final blank line.

        Returns:
            Bytes to send before any body bytes.
        """
        status = self.status_line + "\r\n"
        header_lines = [f"{name}: {value}" for name, value in self.headers.items()]

        if legacy_framing:
            return (status + "".join(header_lines)).encode("utf-8")

        # Each header ends with CRLF, then an empty line separates the body
        return (status + "".join(line + "\r\n" for line in header_lines) + "\r\n").encode("utf-8")
