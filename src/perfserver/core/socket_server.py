"""
=============================================================================
LISTENING SOCKET
=============================================================================

Creates, configures and binds the one listening socket a server process
owns. The event loop takes it from there (loop.create_server(sock=...)).

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:
Rebind immediately after a restart instead of waiting out TIME_WAIT.

SO_REUSEPORT:
Allow SEVERAL processes to bind the same address. This is the whole trick
behind the cluster variant: every replica binds 0.0.0.0:3000 on its own
socket and the kernel spreads new connections across them.

    Replica 1: bind(0.0.0.0:3000)  ✓
    Replica 2: bind(0.0.0.0:3000)  ✓  (kernel distributes connections)
    Replica 3: bind(0.0.0.0:3000)  ✓

Only set when asked for. A lone server that accidentally shares its port
with a stale process would serve half the traffic from the wrong code.

TCP_NODELAY:
Disable Nagle's algorithm so small responses go out immediately.

=============================================================================
"""

import logging
import socket
from typing import Optional, Tuple

from ..config import ServerConfig


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Owner of a server's listening socket.

    Usage:
        listener = SocketServer(config)
        sock = listener.listen()   # raises OSError if the port is taken
        server = await loop.create_server(factory, sock=sock)
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None

    @property
    def address(self) -> Tuple[str, int]:
        """The (host, port) this server binds to."""
        return (self.config.host, self.config.port)

    @property
    def listening_socket(self) -> Optional[socket.socket]:
        """The listening socket, once listen() has succeeded."""
        return self._socket

    def _create_socket(self) -> socket.socket:
        """Create the TCP socket and apply the socket options."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        if self.config.reuse_port:
            if not hasattr(socket, "SO_REUSEPORT"):
                sock.close()
                raise OSError("SO_REUSEPORT is not supported on this platform")
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        return sock

    def listen(self) -> socket.socket:
        """
        Bind and listen.

        Fails fast: a port that cannot be bound is logged and the OSError
        propagates, ending the process.

        Returns:
            The listening socket.
        """
        sock = self._create_socket()

        try:
            sock.bind(self.address)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            sock.close()
            raise

        sock.listen(self.config.backlog)
        self._socket = sock
        return sock

    def close(self) -> None:
        """Close the listening socket if it is still open."""
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None
