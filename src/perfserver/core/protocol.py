"""
=============================================================================
HTTP CONNECTION PROTOCOL
=============================================================================

One HTTPProtocol instance per accepted TCP connection, driven by the
asyncio event loop. There is exactly one thread in a server process; every
method below runs on it.

=============================================================================
WHY AN EVENT LOOP?
=============================================================================

The demos exist to show what a single-threaded cooperative server does
with two kinds of "slow" handler:

    BLOCKING (/delay, /timer)
        The handler spins for 9 s inside data_received(). The loop cannot
        run anything else until it returns: no accepts, no reads, no
        timers. Every other client waits.

    DEFERRED (/delay-async)
        The handler returns an awaitable immediately. data_received()
        returns, the loop goes back to serving other connections, and
        9 s later the timer completes the awaitable and we write.

    t=0s   GET /delay-async  ──► handler returns future ──► loop free
    t=1s   GET /             ──► handled, written         (~1 ms)
    t=9s   timer fires       ──► future done ──► written

A thread-per-connection server would hide the difference. That is the
point of using one loop and nothing else.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
                ▲                                               │
                └───────────────────────────────────────────────┘
                                       │
                                       ▼
                                CLOSING ──► CLOSED

One request is in flight per connection. Bytes of further (pipelined)
requests are buffered and served, in order, once the current response is
written.

=============================================================================
"""

import asyncio
import functools
import inspect
import logging
import uuid
from enum import Enum
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..http import (
    HTTPRequest, RequestParser, HTTPParseError, find_request_end,
    HTTPResponse, HTTPStatus, HandlerResult,
    error_response, internal_error,
)


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"                # Accepted, nothing read yet
    READING = "reading"        # Partial request buffered
    PROCESSING = "processing"  # Handler running or its response pending
    WRITING = "writing"        # Response being handed to the transport
    KEEP_ALIVE = "keep_alive"  # Response written, waiting for next request
    CLOSING = "closing"        # close() called
    CLOSED = "closed"          # connection_lost() seen


class HTTPProtocol(asyncio.Protocol):
    """
    HTTP/1.1 over one TCP connection.

    Args:
        handler: Called with each parsed request. Returns an HTTPResponse,
                 or an awaitable resolving to one.
        config: Server configuration (limits, keep-alive, server name).
        parser: Shared request parser.
    """

    def __init__(
        self,
        handler: Callable[[HTTPRequest], HandlerResult],
        config: ServerConfig,
        parser: RequestParser,
    ):
        self._handler = handler
        self._config = config
        self._parser = parser

        self.id = str(uuid.uuid4())[:8]
        self.state = ConnectionState.NEW
        self.address: Tuple[str, int] = ("", 0)
        self.requests_handled = 0

        self.transport: Optional[asyncio.Transport] = None
        self._buffer = b""
        self._peer_closed = False
        self._idle_timer: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[asyncio.Future] = None

    # =========================================================================
    # asyncio.Protocol CALLBACKS
    # =========================================================================

    def connection_made(self, transport: asyncio.Transport) -> None:
        self.transport = transport
        peer = transport.get_extra_info("peername")
        if peer:
            self.address = (peer[0], peer[1])
        logger.debug(f"[{self.id}] Accepted connection from {self.address[0]}:{self.address[1]}")
        self._arm_idle_timer()

    def data_received(self, data: bytes) -> None:
        self._buffer += data

        if (
            self.state == ConnectionState.PROCESSING
            and len(self._buffer) > self._config.max_request_size
        ):
            # Nothing can be answered ahead of the pending response.
            logger.debug(
                f"[{self.id}] {len(self._buffer)} bytes buffered behind a pending response, closing"
            )
            self._buffer = b""
            self.close()
            return

        self._process_buffer()

    def eof_received(self) -> bool:
        # Half-closed by the client: keep the transport open while a
        # response is still owed, close after writing it.
        self._peer_closed = True
        return self.state == ConnectionState.PROCESSING

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._cancel_idle_timer()
        self.state = ConnectionState.CLOSED
        self.transport = None
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    # =========================================================================
    # REQUEST FLOW
    # =========================================================================

    def _process_buffer(self) -> None:
        """
        Serve every complete request in the buffer, one at a time.

        Stops as soon as a request is left pending (deferred handler),
        the connection starts closing, or only a partial request remains.
        """
        while self.state not in (
            ConnectionState.PROCESSING,
            ConnectionState.CLOSING,
            ConnectionState.CLOSED,
        ):
            request_end = find_request_end(self._buffer)

            if request_end == -1:
                if len(self._buffer) > self._config.max_request_size:
                    self._reject(HTTPParseError(
                        f"Request too large: {len(self._buffer)} bytes",
                        status_code=413,
                    ))
                elif self._buffer:
                    self.state = ConnectionState.READING
                return

            raw = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            try:
                request = self._parser.parse(raw, self.address)
            except HTTPParseError as e:
                self._reject(e)
                return

            self._dispatch(request)

    def _dispatch(self, request: HTTPRequest) -> None:
        """
        Run the handler and either write its response now or wait for it.

        A handler that blocks blocks right here, and with it the loop.
        """
        self.state = ConnectionState.PROCESSING
        self._cancel_idle_timer()

        try:
            result = self._handler(request)
        except Exception as e:
            logger.exception(f"[{self.id}] Handler error: {e}")
            result = internal_error()

        if inspect.isawaitable(result):
            self._pending = asyncio.ensure_future(result)
            self._pending.add_done_callback(
                functools.partial(self._on_deferred_done, request)
            )
            return

        self._write_response(request, result)

    def _on_deferred_done(self, request: HTTPRequest, future: asyncio.Future) -> None:
        """Write the response of a deferred handler once it is ready."""
        self._pending = None

        if future.cancelled():
            logger.debug(f"[{self.id}] Deferred response cancelled")
            self.close()
            return

        error = future.exception()
        if error is not None:
            logger.error(f"[{self.id}] Handler error: {error}", exc_info=error)
            response = internal_error()
        else:
            response = future.result()

        self._write_response(request, response)

        if self.state == ConnectionState.KEEP_ALIVE and self._buffer:
            self._process_buffer()

    def _write_response(self, request: HTTPRequest, response: HTTPResponse) -> None:
        """Add connection headers, write the response, then keep alive or close."""
        if self.transport is None or self.transport.is_closing():
            # Client went away while the response was pending.
            logger.debug(f"[{self.id}] Client gone, dropping response to {request.method} {request.path}")
            self.state = ConnectionState.CLOSED
            return

        keep_alive = (
            request.is_keep_alive
            and self._config.keep_alive
            and not self._peer_closed
            and response.headers.get("Connection") != "close"
        )

        if keep_alive:
            response.headers.setdefault("Connection", "keep-alive")
            response.headers.setdefault(
                "Keep-Alive",
                f"timeout={int(self._config.keep_alive_timeout)}",
            )
        else:
            response.headers["Connection"] = "close"

        self.state = ConnectionState.WRITING
        self.transport.write(response.to_bytes(
            self._config.server_name,
            include_body=request.method != "HEAD",
        ))
        self.requests_handled += 1

        logger.debug(
            f'[{self.id}] {self.address[0]} "{request.method} {request.path} '
            f'{request.version}" {int(response.status)} {len(response.body)}'
        )

        if not keep_alive:
            self.close()
            return

        self.state = ConnectionState.KEEP_ALIVE
        self._arm_idle_timer()

    def _reject(self, error: HTTPParseError) -> None:
        """Answer a request that could not be parsed, then close."""
        logger.debug(f"[{self.id}] Bad request: {error}")

        if self.transport is not None and not self.transport.is_closing():
            response = error_response(HTTPStatus(error.status_code), str(error))
            self.transport.write(response.to_bytes(self._config.server_name))

        self._buffer = b""
        self.close()

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """Close the connection; buffered writes are flushed first."""
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return

        self.state = ConnectionState.CLOSING
        self._cancel_idle_timer()

        if self.transport is not None:
            self.transport.close()

    def _arm_idle_timer(self) -> None:
        self._cancel_idle_timer()
        loop = asyncio.get_running_loop()
        self._idle_timer = loop.call_later(
            self._config.keep_alive_timeout, self._on_idle_timeout
        )

    def _cancel_idle_timer(self) -> None:
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def _on_idle_timeout(self) -> None:
        self._idle_timer = None
        if self.state in (ConnectionState.NEW, ConnectionState.READING, ConnectionState.KEEP_ALIVE):
            logger.debug(f"[{self.id}] Idle timeout")
            self.close()
