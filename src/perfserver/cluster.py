"""
=============================================================================
CLUSTER VARIANT
=============================================================================

Runs the cluster demo: a primary that spawns one replica per CPU, and
replicas that each serve the demo routes on the same port.

    $ python -m perfserver --variant cluster
    ... [INFO] perfserver.cluster: Primary 4120 is running
    ... [INFO] perfserver.cluster: Worker 4121 started
    ... [INFO] perfserver.cluster: Worker 4122 started
    ... [INFO] perfserver.server: Server listening on port 3000
    ... [INFO] perfserver.server: Server listening on port 3000

    $ curl localhost:3000/
    Performance example: 4122

The role of a process is an explicit Role value handed to run_role() when
the process starts. The primary is started with Role.PRIMARY; it starts
every replica with Role.REPLICA. Nothing inspects globals to find out.

=============================================================================
"""

import dataclasses
import logging
import os
from typing import Optional

from .app import Variant, create_app
from .config import ServerConfig, configure_logging
from .core import Replicator, Role


logger = logging.getLogger(__name__)


def run_replica(config: ServerConfig) -> None:
    """
    Replica main: serve the cluster routes on the shared port.

    SO_REUSEPORT is always on here so every replica can bind the same
    port; a bind failure ends this replica only.
    """
    config = dataclasses.replace(config, reuse_port=True)
    configure_logging(config)

    logger.info(f"Worker {os.getpid()} started")

    app = create_app(Variant.CLUSTER, config)
    app.run()


def run_primary(config: ServerConfig, replicas: Optional[int] = None) -> Replicator:
    """
    Primary main: spawn the replicas and wait for them to exit.

    The primary never binds the port and never serves a request.

    Args:
        config: Passed unchanged to every replica.
        replicas: Replica count. Defaults to one per logical CPU.

    Returns:
        The Replicator, after every replica has exited.

    Raises:
        ReplicaSpawnError: If a replica could not be started.
        ReplicaExitError: If every replica exited with an error.
    """
    configure_logging(config)

    logger.info(f"Primary {os.getpid()} is running")

    replicator = Replicator(
        target=run_role,
        args=(Role.REPLICA, config),
        replicas=replicas,
    )

    try:
        replicator.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")

    return replicator


def run_role(role: Role, config: ServerConfig, replicas: Optional[int] = None) -> None:
    """Run this process as ``role``. Called once per process."""
    if role is Role.PRIMARY:
        run_primary(config, replicas)
    else:
        run_replica(config)


def run_cluster(config: Optional[ServerConfig] = None, replicas: Optional[int] = None) -> None:
    """Start the cluster variant from the current process, as its primary."""
    config = config or ServerConfig()
    config.validate()
    run_role(Role.PRIMARY, config, replicas)
