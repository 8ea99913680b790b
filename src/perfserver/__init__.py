"""
=============================================================================
PERFSERVER: EVENT LOOP BLOCKING DEMOS
=============================================================================

Three tiny HTTP servers that show, from the outside, what blocking a
single-threaded event loop does, and what running one loop per CPU core
buys back.

=============================================================================
THE THREE VARIANTS
=============================================================================

    delay     GET /             → "Performance example"      immediate
              GET /delay        → "Delay example"            busy-waits 9 s
              GET /delay-async  → "Async delay example"      9 s timer

    timer     GET /             → "Performance example"      immediate
              GET /timer        → "Timer example"            busy-waits 9 s

    cluster   GET /             → "Performance example: <pid>"
              GET /delay        → "Delay example: <pid>"     busy-waits 9 s
              GET /delay-async  → "Async delay example"      9 s timer
              (one replica process per CPU, all on port 3000)

=============================================================================
TRY IT
=============================================================================

    $ python -m perfserver --variant delay
    $ curl localhost:3000/delay &      # takes 9 s ...
    $ curl localhost:3000/             # ... and so does this one

    $ curl localhost:3000/delay-async &  # takes 9 s ...
    $ curl localhost:3000/               # ... this one answers at once

    $ python -m perfserver --variant cluster
    $ curl localhost:3000/delay &      # one replica is stuck ...
    $ curl localhost:3000/             # ... another one answers

=============================================================================
USAGE FROM CODE
=============================================================================

    from perfserver import create_app, Variant, ServerConfig

    app = create_app(Variant.DELAY, ServerConfig(port=3000))
    app.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer
from .app import Variant, create_app
from .cluster import run_cluster

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "Variant",
    "create_app",
    "run_cluster",
    "__version__",
]
