"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows HTTP framing:

    adapter.py       HTTPSocket: one request in, one response out, over a
                     raw byte stream
    request.py       RequestParser / RequestHead: the request head
    response.py      ResponseHead: status line and headers, deferred
    errors.py        HTTPSocketError kinds and HTTPParseError
    status_codes.py  HTTPStatus with reason phrases

=============================================================================
"""

from .adapter import HTTPSocket, HTTPSocketListener, ParserState
from .errors import HTTPSocketError, HTTPParseError
from .request import RequestHead, RequestParser, parse_request_head
from .response import ResponseHead
from .status_codes import HTTPStatus, status_text

__all__ = [
    # Adapter
    "HTTPSocket",
    "HTTPSocketListener",
    "ParserState",

    # Errors
    "HTTPSocketError",
    "HTTPParseError",

    # Request / response heads
    "RequestHead",
    "RequestParser",
    "parse_request_head",
    "ResponseHead",

    # Status codes
    "HTTPStatus",
    "status_text",
]
