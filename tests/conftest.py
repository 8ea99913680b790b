"""
pytest configuration and fixtures.
"""

import http.client
import socket
import threading
import time
from typing import Callable, Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from perfserver import HTTPServer, ServerConfig, Variant, create_app


# Short stand-in for the 9000 ms demo delay
TEST_DELAY_MS = 1500

# Budget for a request that must not be held up ("negligible" latency)
FAST_SECONDS = 0.25


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /delay?verbose=1 HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/plain\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"hello=world"
    headers = (
        b"POST /submit HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        b"Content-Length: %d\r\n"
        b"Connection: close\r\n"
        b"\r\n"
    ) % len(body)
    return headers + body


@pytest.fixture
def config(free_port: int) -> ServerConfig:
    """Test server configuration on a free local port."""
    return ServerConfig(
        host="127.0.0.1",
        port=free_port,
        delay_ms=TEST_DELAY_MS,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def wait_for_port(port: int, timeout: float = 10.0) -> None:
    """Poll until something accepts connections on ``port``."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            with socket.create_connection(('127.0.0.1', port), timeout=0.5):
                return
        except OSError:
            time.sleep(0.1)
    raise RuntimeError(f"Nothing listening on port {port}")


def http_get(
    port: int,
    path: str,
    method: str = "GET",
    timeout: float = 30.0,
) -> Tuple[int, str, float]:
    """
    Make one request on a fresh connection.

    Returns:
        (status, body text, elapsed seconds)
    """
    start = time.monotonic()
    conn = http.client.HTTPConnection('127.0.0.1', port, timeout=timeout)
    try:
        conn.request(method, path, headers={"Connection": "close"})
        response = conn.getresponse()
        body = response.read().decode("utf-8")
        return response.status, body, time.monotonic() - start
    finally:
        conn.close()


class BackgroundRequest:
    """A request running in its own thread, so tests can overlap requests."""

    def __init__(self, port: int, path: str):
        self.port = port
        self.path = path
        self.result: Optional[Tuple[int, str, float]] = None
        self.finished_at: Optional[float] = None
        self.error: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        try:
            self.result = http_get(self.port, self.path)
        except BaseException as e:  # surfaced by join()
            self.error = e
        self.finished_at = time.monotonic()

    def start(self) -> "BackgroundRequest":
        self._thread.start()
        return self

    def join(self, timeout: float = 30.0) -> Tuple[int, str, float]:
        self._thread.join(timeout)
        if self.error is not None:
            raise self.error
        assert self.result is not None, f"{self.path} did not finish"
        return self.result


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # not a test class

    def __init__(self, server: HTTPServer):
        self.server = server
        self.port = server.config.port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.stop()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def start_app(config: ServerConfig) -> Generator[Callable[[Variant], TestServer], None, None]:
    """Factory fixture: start a demo variant on the test config."""
    started: List[TestServer] = []

    def start(variant: Variant) -> TestServer:
        test_srv = TestServer(create_app(variant, config))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield start

    for test_srv in started:
        test_srv.stop()
