"""
=============================================================================
DEMO APPLICATIONS
=============================================================================

The three demo variants, each a route table over the same handlers.

    VARIANT   ROUTES                               NOTES
    ───────   ──────────────────────────────────   ──────────────────────────
    delay     /  /delay  /delay-async              blocking vs timer side by side
    timer     /  /timer                            blocking only
    cluster   /  /delay  /delay-async              bodies carry the pid; run
                                                   by every replica process

=============================================================================
"""

from enum import Enum
from typing import Optional

from .config import ServerConfig
from .handlers import DemoHandler
from .server import HTTPServer


class Variant(Enum):
    """Which demo to serve."""
    DELAY = "delay"
    TIMER = "timer"
    CLUSTER = "cluster"


def create_app(variant: Variant = Variant.DELAY, config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Build the server for a demo variant.

    Configuration is passed in explicitly; nothing is read from globals.

    Args:
        variant: Which route table to install.
        config: Server configuration. Defaults to port 3000, 9000 ms delay.

    Returns:
        An HTTPServer ready to run().

    Example:
        app = create_app(Variant.TIMER)
        app.run()
    """
    variant = Variant(variant)
    server = HTTPServer(config)
    demo = DemoHandler(server.config, include_pid=variant is Variant.CLUSTER)

    server.add_route("/", demo.index)

    if variant is Variant.TIMER:
        server.add_route("/timer", demo.timer)
    else:
        server.add_route("/delay", demo.delay)
        server.add_route("/delay-async", demo.delay_async)

    return server
