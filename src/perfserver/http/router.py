"""
=============================================================================
URL ROUTER
=============================================================================

Exact-path, per-method routing for the demo servers.

    GET  /             → index
    GET  /delay        → delay         (busy-waits, blocks the event loop)
    GET  /delay-async  → delay_async   (timer, event loop stays free)
    anything else      → 404 "Cannot GET /whatever"

There are no path parameters, no wildcards and no prefixes: each variant
registers two or three fixed paths and nothing more.

=============================================================================
SYNC AND DEFERRED HANDLERS
=============================================================================

A handler takes the request and returns EITHER:

    HTTPResponse              written as soon as the handler returns
    Awaitable[HTTPResponse]   written whenever the awaitable completes

The router does not care which; it passes the result through and the
protocol layer decides when bytes hit the socket. That is what lets
/delay-async hand control back to the event loop while its timer runs.

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Union

from .request import HTTPRequest
from .response import HTTPResponse, not_found


logger = logging.getLogger(__name__)


HandlerResult = Union[HTTPResponse, Awaitable[HTTPResponse]]
Handler = Callable[[HTTPRequest], HandlerResult]


@dataclass
class Route:
    """A registered (method, path) → handler binding."""

    path: str
    method: str
    handler: Handler
    name: Optional[str] = None


def normalize_path(path: str) -> str:
    """Ensure a leading slash and drop a trailing one ("/delay/" → "/delay")."""
    return "/" + path.strip("/") if path != "/" else "/"


class Router:
    """
    HTTP request router with exact path matching.

        router = Router()

        @router.get("/")
        def index(request):
            return ok("Performance example")

        response = router.handle(request)
    """

    def __init__(self):
        self._routes: List[Route] = []

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str = "GET",
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            path: Exact URL path (e.g. /delay)
            handler: Callable taking the request, returning a response or
                     an awaitable of one
            method: HTTP method
            name: Optional route name, used in debug output

        Returns:
            The registered Route.
        """
        route = Route(
            path=normalize_path(path),
            method=method.upper(),
            handler=handler,
            name=name or getattr(handler, "__name__", None),
        )
        self._routes.append(route)
        return route

    def match(self, method: str, path: str) -> Optional[Route]:
        """
        Find the route for ``method`` and ``path``.

        First registered, first matched. HEAD falls back to the GET route
        for the same path, the way every mainstream framework serves HEAD.

        Returns:
            The matching Route, or None.
        """
        method = method.upper()
        path = normalize_path(path)

        for route in self._routes:
            if route.path == path and route.method == method:
                return route

        if method == "HEAD":
            return self.match("GET", path)

        return None

    def handle(self, request: HTTPRequest) -> HandlerResult:
        """
        Route a request to its handler.

        Returns:
            Whatever the handler returned, or a 404 response when no route
            matches the method and path.
        """
        route = self.match(request.method, request.path)

        if route is None:
            logger.debug(f"No route for {request.method} {request.path}")
            return not_found(request.method, request.path)

        return route.handler(request)

    # =========================================================================
    # DECORATOR-STYLE ROUTE REGISTRATION
    # =========================================================================

    def route(self, path: str, method: str = "GET", name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorator registering a handler for ``method`` on ``path``."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method=method, name=name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route(path, "GET", name)

    def routes(self) -> List[Route]:
        """All registered routes, in registration order."""
        return list(self._routes)

    def log_routes(self) -> None:
        """Log the route table at DEBUG level."""
        for route in self._routes:
            logger.debug(f"  {route.method:8} {route.path} -> {route.name}")
