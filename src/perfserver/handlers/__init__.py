"""
=============================================================================
REQUEST HANDLERS
=============================================================================

Handlers are plain callables: they take an HTTPRequest and return an
HTTPResponse, or an awaitable that resolves to one.

    from perfserver.handlers import DemoHandler

    demo = DemoHandler(config)
    server.get("/")(demo.index)
    server.get("/delay")(demo.delay)
    server.get("/delay-async")(demo.delay_async)

=============================================================================
"""

from .demo import DemoHandler, busy_wait

__all__ = [
    "DemoHandler",  # index / delay / timer / delay_async
    "busy_wait",    # Block the calling thread without yielding
]
