"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses (RFC 7230).

    HTTP/1.1 200 OK\r\n                         ← status line
    Content-Type: text/plain; charset=utf-8\r\n
    Content-Length: 19\r\n                      ← always set
    Date: Sun, 18 Oct 2026 10:00:00 GMT\r\n     ← always set
    Server: perfserver/1.0\r\n                  ← always set
    \r\n
    Performance example                         ← body

Every demo route answers with plain text, so the builder is small:
a status, a few headers, a text body.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Union

from .status_codes import HTTPStatus


TEXT_PLAIN = "text/plain; charset=utf-8"


@dataclass
class HTTPResponse:
    """
    An HTTP response to be written to the client.

    Written exactly once; after that the exchange is over.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Status line, e.g. "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.body.decode("utf-8")

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header; returns self for chaining."""
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body, encoding strings as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def to_bytes(self, server_name: str = "perfserver/1.0", include_body: bool = True) -> bytes:
        """
        Serialize the response for transport.write().

        Args:
            server_name: Value for the Server header.
            include_body: False for HEAD requests. Content-Length still
                          describes the body a GET would have received.

        Returns:
            Complete response bytes.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"

        if not include_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .text("Cannot GET /missing")
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        """Set the status code."""
        self._status = status
        return self

    def text(self, text: str, content_type: str = TEXT_PLAIN) -> "ResponseBuilder":
        """Set a plain text body and its Content-Type."""
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Tell the client the connection closes after this response."""
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        """Build the HTTPResponse."""
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always GMT.

    Example: Sun, 18 Oct 2026 10:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(text: str) -> HTTPResponse:
    """200 OK with a plain text body."""
    return ResponseBuilder().status(HTTPStatus.OK).text(text).build()


def not_found(method: str, path: str) -> HTTPResponse:
    """
    404 for a request no route matched.

    Same wording as the stock Express handler: "Cannot GET /missing".
    """
    return (ResponseBuilder()
        .status(HTTPStatus.NOT_FOUND)
        .text(f"Cannot {method} {path}")
        .build())


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """
    Plain text error that also closes the connection.

    Used for requests that never reached a handler (parse errors).
    """
    return (ResponseBuilder()
        .status(status)
        .text(message)
        .close_connection()
        .build())


def internal_error() -> HTTPResponse:
    """500 for a handler that raised. Never exposes the exception."""
    return (ResponseBuilder()
        .status(HTTPStatus.INTERNAL_SERVER_ERROR)
        .text(HTTPStatus.INTERNAL_SERVER_ERROR.phrase)
        .build())
