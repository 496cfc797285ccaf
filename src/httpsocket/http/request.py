"""
=============================================================================
HTTP REQUEST HEAD PARSER
=============================================================================

Turns the header block of an HTTP/1.0 or HTTP/1.1 request into a
RequestHead (method, URI, version, headers).

=============================================================================
WHERE THE HEADER BLOCK COMES FROM
=============================================================================

The parser does not read from the network. HTTPSocket accumulates bytes
as they arrive and only calls in here once the CRLFCRLF terminator has
been seen:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     Inbound buffer at parse time                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /upload HTTP/1.1\r\n            ┐                              │
    │   Host: localhost\r\n                 ├── header block (parsed here) │
    │   Content-Length: 5                   ┘                              │
    │   \r\n\r\n                            ←── terminator (discarded)     │
    │   hello                               ←── body (left for read())     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING RULES
=============================================================================

1. REQUEST LINE: split on a single space into exactly three fields.
   "GET /foo HTTP/1.1"  → ("GET", "/foo", "HTTP/1.1")
   "GET /foo"           → MALFORMED_REQUEST_LINE
   "GET  /foo HTTP/1.1" → MALFORMED_REQUEST_LINE (empty field, 4 parts)

2. VERSION: only the literal tokens "HTTP/1.0" and "HTTP/1.1".

3. HEADERS: "Name: value", split at the FIRST colon.
   - Name is trimmed and lower-cased ("Content-Type" → "content-type")
   - Value is trimmed, otherwise kept verbatim (colons allowed)
   - A repeated name overwrites the earlier value (last one wins)
   - A line without ":" → MALFORMED_REQUEST_HEADER

The URI is stored verbatim: no percent-decoding, no query splitting.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict

from .errors import HTTPSocketError, HTTPParseError


HEADER_TERMINATOR = b"\r\n\r\n"
LINE_SEPARATOR = "\r\n"
SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")


@dataclass
class RequestHead:
    """
    The parsed head of one HTTP request.

    Fields are filled in by RequestParser.parse() in order. If parsing stops
    early, whatever was filled before the failing line stays as it is; the
    request-line fields are only ever set together.
    """

    method: str = ""
    uri: str = ""
    version: str = ""
    headers: Dict[str, str] = field(default_factory=dict)  # lowercase name → value

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses a complete header block into a RequestHead.

    Stateless: the framing (waiting for the terminator) lives in HTTPSocket,
    so one parser instance can be shared freely.
    """

    def find_header_end(self, buffer: bytes) -> int:
        """
        Offset of the CRLFCRLF terminator in buffer, or -1.

        Plain substring search. Called again on every arrival while the
        buffer grows, so a terminator split across two reads is found on
        the second call.
        """
        return buffer.find(HEADER_TERMINATOR)

    def parse(self, block: bytes, head: RequestHead) -> RequestHead:
        """
        Parse a header block (terminator excluded) into head.

        Args:
            block: Bytes preceding the first CRLFCRLF.
            head: RequestHead to fill in place.

        Returns:
            The same head, fully populated.

        Raises:
            HTTPParseError: On the first invalid line. Fields filled before
                            that line are left in head.
        """
        # Header bytes are ASCII in practice; never fail on stray bytes
        text = block.decode("utf-8", errors="replace")
        lines = text.split(LINE_SEPARATOR)

        method, uri, version = self.parse_request_line(lines[0])
        head.method = method
        head.uri = uri
        head.version = version

        for line in lines[1:]:
            name, value = self.parse_header_line(line)
            head.headers[name] = value

        return head

    def parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Split "METHOD SP URI SP VERSION" into its three fields.

        Raises:
            HTTPParseError: MALFORMED_REQUEST_LINE or INVALID_HTTP_VERSION.
        """
        parts = line.split(" ")
        if len(parts) != 3:
            raise HTTPParseError(HTTPSocketError.MALFORMED_REQUEST_LINE, repr(line))

        method, uri, version = parts
        if version not in SUPPORTED_VERSIONS:
            raise HTTPParseError(HTTPSocketError.INVALID_HTTP_VERSION, repr(version))

        return method, uri, version

    def parse_header_line(self, line: str) -> tuple[str, str]:
        """
        Split "Name: value" at the first colon.

        Returns:
            (lowercase trimmed name, trimmed value)

        Raises:
            HTTPParseError: MALFORMED_REQUEST_HEADER if there is no colon.
        """
        index = line.find(":")
        if index == -1:
            raise HTTPParseError(HTTPSocketError.MALFORMED_REQUEST_HEADER, repr(line))

        return line[:index].strip().lower(), line[index + 1:].strip()


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request_head(block: bytes) -> RequestHead:
    """
    Parse a header block into a fresh RequestHead.

    Useful outside of a connection (tests, tooling). Raises HTTPParseError
    on invalid input instead of recording it.
    """
    return RequestParser().parse(block, RequestHead())
