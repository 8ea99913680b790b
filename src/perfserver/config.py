"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the demo servers.

=============================================================================
WHY A CONFIG CLASS?
=============================================================================

The demo servers are deliberately fixed: port 3000, a 9 second delay, and
three canned routes. Those constants still live in ONE place so that:

1. The CLI can override host/port/log level without touching handlers
2. Tests can shrink the delay from 9000 ms to something a test suite
   can afford to wait for
3. Every replica in the cluster variant receives the same settings,
   passed explicitly instead of read from module globals

There are no environment variables and no config files. The defaults ARE
the behavior; anything else is an explicit override from code or CLI.

=============================================================================
CONFIGURATION GROUPS
=============================================================================

    NETWORK        host, port, backlog, reuse_port
    HTTP           max_request_size, keep_alive,
                   keep_alive_timeout, server_name
    DEMO           delay_ms
    LOGGING        log_level

=============================================================================
"""

import logging
from dataclasses import dataclass


DEFAULT_PORT = 3000
DEFAULT_DELAY_MS = 9000

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for a demo server process.

    =========================================================================
    USAGE
    =========================================================================

        # Exactly what the demos run with
        config = ServerConfig()

        # A test server that blocks for 1.5 s instead of 9 s
        config = ServerConfig(host="127.0.0.1", port=free_port, delay_ms=1500)

    =========================================================================
    """

    # NETWORK SETTINGS

    host: str = "0.0.0.0"
    """
    The IP address to bind to. All interfaces by default, so the demo is
    reachable the same way a Node/Express app listening on a bare port is.
    """

    port: int = DEFAULT_PORT
    """The TCP port every variant (and every replica) listens on."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    reuse_port: bool = False
    """
    Set SO_REUSEPORT on the listening socket.
    Replicas always turn this on so they can all bind the same port;
    the kernel then spreads incoming connections across them.
    """

    # HTTP SETTINGS

    max_request_size: int = 1024 * 1024  # 1 MB
    """Requests larger than this are answered with 413 and closed."""

    keep_alive: bool = True
    """Allow several requests on one TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a keep-alive connection is closed."""

    server_name: str = "perfserver/1.0"
    """Value of the Server response header."""

    # DEMO SETTINGS

    delay_ms: int = DEFAULT_DELAY_MS
    """
    How long the delay routes hold their response, in milliseconds.
    Blocking routes busy-wait for this long, /delay-async waits on a timer.
    """

    # LOGGING

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @property
    def delay_seconds(self) -> float:
        """The demo delay in seconds, for timer APIs."""
        return self.delay_ms / 1000.0

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at server construction so a bad value stops the
        process at startup instead of on the first request.

        Raises:
            ValueError: If any value is out of range.
        """
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.delay_ms <= 0:
            raise ValueError("delay_ms must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")


def configure_logging(config: ServerConfig) -> None:
    """
    Configure process-wide logging from the config.

    Every process (single server, cluster primary, each replica) calls this
    once before it logs anything.
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("perfserver").setLevel(level)
