"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together into one single-threaded server process.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. LISTEN          SocketServer binds host:port (fails fast)
    2. ACCEPT          the event loop accepts, one HTTPProtocol per client
    3. FRAME + PARSE   HTTPProtocol buffers bytes into whole requests
    4. ROUTE           Router matches (method, exact path)
    5. HANDLE          handler returns a response ... or a future of one
    6. WRITE           now, or when the future completes
    7. KEEP-ALIVE      wait for the next request, or close

All seven steps for every client happen on ONE thread. Nothing here
creates threads or processes; the cluster variant gets its parallelism by
running several of these servers in separate processes.

=============================================================================
"""

import asyncio
import logging
import threading
from typing import Optional

from .config import ServerConfig, configure_logging
from .core import SocketServer, HTTPProtocol
from .http import RequestParser, Router, Handler


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Single-threaded HTTP/1.1 server on an asyncio event loop.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=3000))

        @server.get("/")
        def index(request):
            return ok("Performance example")

        server.run()   # blocks

    From another thread (tests):

        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5.0)
        ...
        server.stop()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults to the demo constants.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router()

        # Set while serve() runs
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._stop_event: Optional[asyncio.Event] = None

        self._ready = threading.Event()
        self._running = False

    @property
    def router(self) -> Router:
        """The route table."""
        return self._router

    @property
    def is_running(self) -> bool:
        """True while the server is listening."""
        return self._running

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def route(self, path: str, method: str = "GET"):
        """Register a route handler for ``method``."""
        return self._router.route(path, method)

    def get(self, path: str):
        """Register a GET route."""
        return self._router.get(path)

    def add_route(self, path: str, handler: Handler, method: str = "GET") -> None:
        """Register a handler without the decorator syntax."""
        self._router.add_route(path, handler, method=method)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Run the server until stop() or Ctrl+C (blocking).

        Args:
            host: Override config host.
            port: Override config port.

        Raises:
            OSError: If the port cannot be bound.
        """
        if host:
            self.config.host = host
        if port:
            self.config.port = port
            self.config.validate()

        configure_logging(self.config)
        self._router.log_routes()

        try:
            asyncio.run(self.serve())
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")

    async def serve(self) -> None:
        """
        Listen and serve on the running event loop until stop().

        The listening socket is bound before the first await, so a port
        that is already taken fails here, before anything is served.
        """
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()

        sock = self._socket_server.listen()
        self._server = await self._loop.create_server(
            self._create_protocol,
            sock=sock,
        )

        self._running = True
        logger.info(f"Server listening on port {self.config.port}")
        self._ready.set()

        try:
            await self._stop_event.wait()
        finally:
            self._running = False
            self._ready.clear()
            self._server.close()
            self._socket_server.close()
            logger.info("Server stopped")

    def stop(self) -> None:
        """
        Stop listening. Safe to call from any thread.

        Connections still open are not drained; whatever they were waiting
        for is abandoned with the event loop.
        """
        if self._running and self._loop is not None and self._stop_event is not None:
            self._loop.call_soon_threadsafe(self._stop_event.set)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the server is listening.

        Returns:
            True if it is listening, False on timeout.
        """
        return self._ready.wait(timeout)

    def _create_protocol(self) -> HTTPProtocol:
        """Protocol factory: one HTTPProtocol per accepted connection."""
        return HTTPProtocol(self._router.handle, self.config, self._parser)
