"""
Unit tests for the per-connection HTTP protocol.

The protocol is driven directly with a fake transport inside a real event
loop, so framing, keep-alive and deferred responses can be checked
without sockets.
"""

import asyncio

from perfserver.config import ServerConfig
from perfserver.core.protocol import HTTPProtocol, ConnectionState
from perfserver.http import RequestParser, Router, ok


class FakeTransport:
    """Records what the protocol writes."""

    def __init__(self):
        self.written = b""
        self.closed = False

    def write(self, data: bytes) -> None:
        assert not self.closed, "write after close"
        self.written += data

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return ("127.0.0.1", 54321)
        return default

    def responses(self):
        """Split the written bytes into (status line, body) pairs."""
        result = []
        data = self.written
        while data:
            head, _, rest = data.partition(b"\r\n\r\n")
            lines = head.decode("latin-1").split("\r\n")
            length = 0
            for line in lines[1:]:
                name, _, value = line.partition(":")
                if name.lower() == "content-length":
                    length = int(value.strip())
            result.append((lines[0], head.decode("latin-1"), rest[:length].decode("utf-8")))
            data = rest[length:]
        return result


def make_router(delay: float = 0.05) -> Router:
    router = Router()
    router.add_route("/", lambda r: ok("Performance example"))

    def deferred(request):
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        loop.call_later(delay, future.set_result, ok("Async delay example"))
        return future

    def broken(request):
        raise RuntimeError("boom")

    async def broken_later(request):
        raise RuntimeError("boom")

    router.add_route("/delay-async", deferred)
    router.add_route("/broken", broken)
    router.add_route("/broken-async", broken_later)
    return router


def make_protocol(**overrides):
    config = ServerConfig(host="127.0.0.1", port=3000, **overrides)
    protocol = HTTPProtocol(
        make_router().handle,
        config,
        RequestParser(max_request_size=config.max_request_size),
    )
    transport = FakeTransport()
    protocol.connection_made(transport)
    return protocol, transport


def run(coro):
    return asyncio.run(coro)


GET_INDEX = b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"
GET_INDEX_CLOSE = b"GET / HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n"
GET_ASYNC = b"GET /delay-async HTTP/1.1\r\nHost: x\r\n\r\n"


class TestSimpleRequests:

    def test_single_get(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(GET_INDEX)
            return protocol, transport

        protocol, transport = run(scenario())
        [(status, head, body)] = transport.responses()

        assert status == "HTTP/1.1 200 OK"
        assert body == "Performance example"
        assert "Connection: keep-alive" in head
        assert protocol.state == ConnectionState.KEEP_ALIVE
        assert protocol.requests_handled == 1
        assert protocol.address == ("127.0.0.1", 54321)

    def test_connection_close(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(GET_INDEX_CLOSE)
            return protocol, transport

        protocol, transport = run(scenario())
        [(status, head, body)] = transport.responses()

        assert "Connection: close" in head
        assert transport.closed
        assert protocol.state == ConnectionState.CLOSING

    def test_keep_alive_disabled(self):
        async def scenario():
            protocol, transport = make_protocol(keep_alive=False)
            protocol.data_received(GET_INDEX)
            return transport

        transport = run(scenario())

        assert "Connection: close" in transport.responses()[0][1]
        assert transport.closed

    def test_request_in_chunks(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(GET_INDEX[:10])
            assert transport.written == b""
            assert protocol.state == ConnectionState.READING
            protocol.data_received(GET_INDEX[10:])
            return transport

        transport = run(scenario())

        assert transport.responses()[0][2] == "Performance example"

    def test_pipelined_requests_answered_in_order(self):
        second = b"GET /missing HTTP/1.1\r\nHost: x\r\n\r\n"

        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(GET_INDEX + second)
            return transport

        transport = run(scenario())
        responses = transport.responses()

        assert [r[0] for r in responses] == ["HTTP/1.1 200 OK", "HTTP/1.1 404 Not Found"]
        assert responses[1][2] == "Cannot GET /missing"

    def test_head_has_no_body(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(b"HEAD / HTTP/1.1\r\nHost: x\r\n\r\n")
            return transport

        transport = run(scenario())

        assert transport.written.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Length: 19\r\n" in transport.written
        assert transport.written.endswith(b"\r\n\r\n")


class TestErrors:

    def _reject(self, raw: bytes, **overrides):
        async def scenario():
            protocol, transport = make_protocol(**overrides)
            protocol.data_received(raw)
            return transport

        transport = run(scenario())
        [(status, head, body)] = transport.responses()
        assert transport.closed
        assert "Connection: close" in head
        return status

    def test_bad_request_line(self):
        assert self._reject(b"NONSENSE\r\n\r\n") == "HTTP/1.1 400 Bad Request"

    def test_unknown_method(self):
        assert self._reject(b"BREW / HTTP/1.1\r\n\r\n") == "HTTP/1.1 405 Method Not Allowed"

    def test_unsupported_version(self):
        status = self._reject(b"GET / HTTP/3.0\r\n\r\n")
        assert status == "HTTP/1.1 505 HTTP Version Not Supported"

    def test_headers_too_large(self):
        raw = b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 5000
        status = self._reject(raw, max_request_size=2048)
        assert status == "HTTP/1.1 413 Payload Too Large"

    def test_handler_exception_is_500(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(b"GET /broken HTTP/1.1\r\nHost: x\r\n\r\n")
            return protocol, transport

        protocol, transport = run(scenario())
        [(status, head, body)] = transport.responses()

        assert status == "HTTP/1.1 500 Internal Server Error"
        assert body == "Internal Server Error"
        assert protocol.state == ConnectionState.KEEP_ALIVE


class TestDeferredResponses:

    def test_written_when_ready(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(GET_ASYNC)
            assert transport.written == b""
            assert protocol.state == ConnectionState.PROCESSING
            await asyncio.sleep(0.2)
            return transport

        transport = run(scenario())

        assert transport.responses()[0][2] == "Async delay example"

    def test_buffered_request_waits_for_deferred(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(GET_ASYNC + GET_INDEX)
            # The second request must not overtake the first
            assert transport.written == b""
            await asyncio.sleep(0.2)
            return transport

        transport = run(scenario())
        bodies = [r[2] for r in transport.responses()]

        assert bodies == ["Async delay example", "Performance example"]

    def test_async_handler_exception_is_500(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(b"GET /broken-async HTTP/1.1\r\nHost: x\r\n\r\n")
            await asyncio.sleep(0.05)
            return transport

        transport = run(scenario())

        assert transport.responses()[0][0] == "HTTP/1.1 500 Internal Server Error"

    def test_client_gone_before_response(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(GET_ASYNC)
            transport.close()
            protocol.connection_lost(None)
            await asyncio.sleep(0.2)
            return protocol, transport

        protocol, transport = run(scenario())

        assert transport.written == b""
        assert protocol.state == ConnectionState.CLOSED

    def test_half_closed_client_still_answered(self):
        async def scenario():
            protocol, transport = make_protocol()
            protocol.data_received(GET_ASYNC)
            keep_open = protocol.eof_received()
            await asyncio.sleep(0.2)
            return keep_open, transport

        keep_open, transport = run(scenario())

        assert keep_open is True
        assert transport.responses()[0][2] == "Async delay example"
        assert transport.closed

    def test_buffer_capped_while_response_pending(self):
        async def scenario():
            protocol, transport = make_protocol(max_request_size=2048)
            protocol.data_received(GET_ASYNC)
            for _ in range(100):
                if transport.closed:
                    break
                protocol.data_received(b"x" * 10240)
            buffered = len(protocol._buffer)
            await asyncio.sleep(0.2)
            return buffered, transport

        buffered, transport = run(scenario())

        assert buffered == 0
        assert transport.closed
        # The pending response is dropped along with the connection
        assert transport.written == b""


class TestIdleTimeout:

    def test_idle_keep_alive_connection_closed(self):
        async def scenario():
            protocol, transport = make_protocol(keep_alive_timeout=0.05)
            protocol.data_received(GET_INDEX)
            await asyncio.sleep(0.2)
            return transport

        assert run(scenario()).closed

    def test_pending_response_not_timed_out(self):
        async def scenario():
            protocol, transport = make_protocol(keep_alive_timeout=0.01)
            protocol.data_received(GET_ASYNC)
            await asyncio.sleep(0.2)
            return transport

        transport = run(scenario())

        assert transport.responses()[0][2] == "Async delay example"
