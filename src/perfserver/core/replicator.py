"""
=============================================================================
WORKER REPLICATOR
=============================================================================

Pre-fork style process replication: one primary process spawns one replica
per logical CPU, and each replica runs its own single-threaded server on
the same port.

=============================================================================
WHY PROCESSES?
=============================================================================

One event loop is one thread is one core. A handler that busy-waits for 9s
freezes that loop, and every client of that process waits with it.

Run N independent processes instead and a frozen replica only freezes
itself. The kernel (SO_REUSEPORT) hands new connections to the replicas
that are still accepting.

    ┌──────────────┐
    │   PRIMARY    │  spawns, then waits. Never binds the port.
    └──────┬───────┘
           │ spawn × cpu_count
    ┌──────┴───────┬──────────────┬──────────────┐
    ▼              ▼              ▼              ▼
  replica        replica        replica        replica
  :3000          :3000          :3000          :3000
  own loop       own loop       own loop       own loop

=============================================================================
WHAT THIS DOES NOT DO
=============================================================================

- No respawn: a replica that dies stays dead; the others keep serving.
- No load balancing policy: the kernel decides.
- No shared state or IPC between replicas.

=============================================================================
"""

import logging
import multiprocessing
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple


logger = logging.getLogger(__name__)


class Role(Enum):
    """
    Role of a process in the cluster variant.

    Decided once at process start and never changed.
    """
    PRIMARY = "primary"    # Spawns replicas, does not serve
    REPLICA = "replica"    # Serves on the shared port


class ReplicaSpawnError(RuntimeError):
    """Raised when a replica process could not be started."""


class ReplicaExitError(RuntimeError):
    """Raised when every replica exited with an error, leaving nothing serving."""


def replication_factor() -> int:
    """
    Number of replicas to spawn: one per logical CPU, at least one.

    Pure function of the host; the primary calls it once at startup.
    """
    try:
        return max(1, multiprocessing.cpu_count())
    except NotImplementedError:
        return 1


class Replicator:
    """
    Spawns and owns the replica processes of a primary.

    Usage:
        replicator = Replicator(target=run_role, args=(Role.REPLICA, config))
        replicator.run()   # spawn, then block until every replica exits

    Args:
        target: Module-level callable run in each replica process.
        args: Positional arguments for target. Must be picklable.
        replicas: How many to spawn. Defaults to replication_factor().
        process_factory: Creates the process handles. Tests pass a fake.
    """

    def __init__(
        self,
        target: Callable[..., Any],
        args: Tuple[Any, ...] = (),
        replicas: Optional[int] = None,
        process_factory: Callable[..., multiprocessing.Process] = multiprocessing.Process,
    ):
        self.count = replicas if replicas is not None else replication_factor()
        if self.count < 1:
            raise ValueError(f"replicas must be >= 1, got {self.count}")

        self._target = target
        self._args = args
        self._process_factory = process_factory
        self.replicas: List[multiprocessing.Process] = []

    def spawn(self) -> List[multiprocessing.Process]:
        """
        Start ``count`` replica processes.

        Fails fast: if any replica cannot be started, the ones already
        running are terminated and ReplicaSpawnError is raised.

        Returns:
            The started process handles.
        """
        if self.replicas:
            raise RuntimeError("Replicas already spawned")

        logger.debug(f"Spawning {self.count} replicas")

        for index in range(self.count):
            process = self._process_factory(
                target=self._target,
                args=self._args,
                name=f"replica-{index}",
            )
            try:
                process.start()
            except Exception as e:
                logger.error(f"Failed to spawn replica {index}: {e}")
                self.terminate()
                raise ReplicaSpawnError(f"Failed to spawn replica {index}: {e}") from e

            self.replicas.append(process)
            logger.debug(f"Spawned replica {index} (PID: {process.pid})")

        return list(self.replicas)

    def wait(self) -> List[Optional[int]]:
        """
        Block until every replica has exited.

        Exits are logged; nothing is restarted.

        Returns:
            The replicas' exit codes, in spawn order.
        """
        for process in self.replicas:
            process.join()
            if process.exitcode:
                logger.warning(f"Worker {process.pid} exited with code {process.exitcode}")
            else:
                logger.info(f"Worker {process.pid} exited")

        return [process.exitcode for process in self.replicas]

    def run(self) -> None:
        """
        Primary main: spawn the replicas, then wait for them.

        Raises:
            ReplicaSpawnError: If a replica could not be started.
            ReplicaExitError: If every replica exited with an error, e.g.
                              because none of them could bind the port.
        """
        self.spawn()
        exit_codes = self.wait()

        if all(exit_codes):
            codes = ", ".join(str(code) for code in exit_codes)
            raise ReplicaExitError(f"All {self.count} replicas failed (exit codes: {codes})")

    def terminate(self) -> None:
        """Terminate and reap every replica that is still running."""
        for process in self.replicas:
            if process.is_alive():
                process.terminate()
        for process in self.replicas:
            process.join()

    @property
    def pids(self) -> List[int]:
        """PIDs of the spawned replicas."""
        return [process.pid for process in self.replicas]
