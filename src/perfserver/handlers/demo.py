"""
=============================================================================
DEMO HANDLERS
=============================================================================

The route handlers of the three demo variants.

    index        immediate          "Performance example"
    delay        busy-waits         "Delay example"
    timer        busy-waits         "Timer example"
    delay_async  timer, non-block   "Async delay example"

=============================================================================
BUSY-WAIT VS TIMER
=============================================================================

busy_wait() is NOT time.sleep(). A sleep would still hold the thread,
but it reads like I/O waiting and invites "just make it async". The
busy-wait is CPU work: a tight loop polling the monotonic clock, the way
a heavy computation (JSON of a huge payload, a crypto hash, a regex gone
exponential) pins the one thread an event loop has.

    busy_wait(9000)
    ├── while monotonic() - start < 9.0: pass
    └── the loop cannot accept, read, write or fire timers meanwhile

delay_async() instead asks the loop for a one-shot timer and returns a
future straight away:

    loop.call_later(9.0, future.set_result, response)
    return future          ← the loop is free again immediately

=============================================================================
"""

import asyncio
import os
import time

from ..config import ServerConfig
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok


def busy_wait(duration_ms: float) -> None:
    """
    Hold the calling thread for ``duration_ms`` without ever yielding.

    Polls time.monotonic() in a tight loop; never sleeps.
    """
    deadline = time.monotonic() + duration_ms / 1000.0
    while time.monotonic() < deadline:
        # Not I/O: nothing else on this thread runs until the loop exits.
        pass


class DemoHandler:
    """
    Handlers for the demo routes.

    Args:
        config: Supplies the demo delay.
        include_pid: Append ": <pid>" to the index and delay bodies, so a
                     client can tell which replica served it.

    Usage:
        handler = DemoHandler(config, include_pid=True)
        router.get("/")(handler.index)
        router.get("/delay")(handler.delay)
        router.get("/delay-async")(handler.delay_async)
    """

    def __init__(self, config: ServerConfig, include_pid: bool = False):
        self.delay_ms = config.delay_ms
        self.delay_seconds = config.delay_seconds
        self.include_pid = include_pid

    def _body(self, text: str) -> str:
        if self.include_pid:
            return f"{text}: {os.getpid()}"
        return text

    def index(self, request: HTTPRequest) -> HTTPResponse:
        """GET / - answers immediately."""
        return ok(self._body("Performance example"))

    def delay(self, request: HTTPRequest) -> HTTPResponse:
        """GET /delay - blocks the event loop for delay_ms, then answers."""
        busy_wait(self.delay_ms)
        return ok(self._body("Delay example"))

    def timer(self, request: HTTPRequest) -> HTTPResponse:
        """GET /timer - same blocking behavior under another name."""
        busy_wait(self.delay_ms)
        return ok("Timer example")

    def delay_async(self, request: HTTPRequest) -> "asyncio.Future[HTTPResponse]":
        """
        GET /delay-async - answers after delay_ms without blocking.

        Schedules a one-shot timer and returns a future the timer resolves.
        No cancellation and no rescheduling; if the client leaves early the
        response is simply dropped when the timer fires.

        Must be called from inside the running event loop.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        response = ok("Async delay example")

        def fire():
            if not future.done():
                future.set_result(response)

        loop.call_later(self.delay_seconds, fire)
        return future
