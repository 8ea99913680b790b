"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The process- and socket-level machinery under the demo routes:

1. SocketServer
   Creates and binds the listening socket (SO_REUSEADDR, optionally
   SO_REUSEPORT, TCP_NODELAY). Fails fast if the port is taken.

2. HTTPProtocol
   One per connection, driven by the asyncio event loop. Frames requests,
   calls the handler, writes the response now or when it is ready.

3. Replicator
   Spawns one replica process per CPU for the cluster variant. No respawn,
   no balancing policy: the kernel spreads connections.

=============================================================================
"""

from .socket_server import SocketServer
from .protocol import HTTPProtocol, ConnectionState
from .replicator import Replicator, ReplicaSpawnError, ReplicaExitError, Role, replication_factor

__all__ = [
    "SocketServer",       # Listening socket setup
    "HTTPProtocol",       # Per-connection HTTP/1.1 on the event loop
    "ConnectionState",    # Connection lifecycle states
    "Replicator",         # Primary-side replica process management
    "ReplicaSpawnError",  # A replica could not be started
    "ReplicaExitError",   # Every replica exited with an error
    "Role",               # PRIMARY or REPLICA
    "replication_factor", # One replica per logical CPU
]
