"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

The HTTP/1.1 pieces of the demo servers: request framing and parsing,
response serialization, and exact-path routing.

    REQUEST:                          RESPONSE:
    GET /delay HTTP/1.1\r\n           HTTP/1.1 200 OK\r\n
    Host: localhost:3000\r\n          Content-Length: 13\r\n
    \r\n                              \r\n
                                      Delay example

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, find_request_end
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,              # 200 OK, plain text
    not_found,       # 404 "Cannot GET /path"
    error_response,  # 4xx/5xx before routing, closes the connection
    internal_error,  # 500 for a handler that raised
)
from .router import Router, Route, Handler, HandlerResult
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "find_request_end",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "not_found",
    "error_response",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "Handler",
    "HandlerResult",

    # Status codes
    "HTTPStatus",
]
