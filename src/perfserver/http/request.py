"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Frames and parses raw HTTP/1.1 request bytes into HTTPRequest objects
(RFC 7230 message syntax).

=============================================================================
FRAMING VS PARSING
=============================================================================

The event loop hands us bytes in arbitrary chunks. Two separate questions:

1. FRAMING: "Do I have a whole request yet, and where does it end?"
   Answered by find_request_end(): look for the \r\n\r\n that ends the
   headers, then add Content-Length bytes of body.

2. PARSING: "What does this whole request say?"
   Answered by RequestParser.parse(): request line, headers, body.

Keeping them apart lets the protocol buffer pipelined requests and only
parse one when the previous response has been written.

    buffer: b"GET / HTTP/1.1\r\nHost: x\r\n\r\nGET /delay HTTP/1.1\r\n..."
             └────────── request 1 ──────────┘└──── partial request 2 ───

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import parse_qs, urlparse, unquote
import re


HEADER_TERMINATOR = b"\r\n\r\n"


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code that should be returned to the client:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Consumed once by a handler and then dropped; nothing about a request
    outlives its response.

    Attributes:
        method:         GET, HEAD, POST, ...
        path:           Request path without the query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header dict with lowercase names
        query_params:   Parsed query string, name -> list of values
        body:           Raw body bytes (Content-Length of them)
        client_address: (ip, port) of the peer
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)

    @property
    def content_length(self) -> int:
        """Content-Length as an integer, 0 if missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if the connection should stay open after this request.

        HTTP/1.1 keeps alive unless "Connection: close".
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


def find_request_end(buffer: bytes) -> int:
    """
    Find where the first complete request in ``buffer`` ends.

    Args:
        buffer: Bytes received so far on a connection.

    Returns:
        Offset just past the first complete request, or -1 if the headers
        or the body are not complete yet.
    """
    header_end = buffer.find(HEADER_TERMINATOR)
    if header_end == -1:
        return -1

    body_start = header_end + len(HEADER_TERMINATOR)
    content_length = _scan_content_length(buffer[:header_end])

    request_end = body_start + content_length
    if len(buffer) < request_end:
        return -1
    return request_end


def _scan_content_length(headers: bytes) -> int:
    """
    Pull Content-Length out of raw header bytes.

    A plain scan rather than a full parse: framing needs the length before
    the request can be parsed. Invalid values count as 0 and the parser
    reports them properly later.
    """
    try:
        header_str = headers.decode("latin-1").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                return max(0, int(line.split(":", 1)[1].strip()))
    except (ValueError, IndexError):
        pass
    return 0


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$
        METHOD SP REQUEST-URI SP HTTP-VERSION

    HEADER_PATTERN: ^([^:]+):\\s*(.*)$
        field-name ":" OWS field-value
    """

    VALID_METHODS = {
        "GET",
        "HEAD",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete HTTP request.

        Args:
            data: Raw request bytes, exactly one request.
            client_address: Peer (ip, port) for logging.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(HEADER_TERMINATOR)
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes are ISO-8859-1 per RFC 7230; latin-1 never fails.
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + len(HEADER_TERMINATOR):]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Parse "GET /path?query HTTP/1.1".

        Returns:
            Tuple of (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 section 3.2.2).
        Obsolete line folding is appended to the previous header.
        Lines that are not "Name: value" are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
