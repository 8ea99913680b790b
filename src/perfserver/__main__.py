"""
=============================================================================
PERFSERVER CLI ENTRY POINT
=============================================================================

    # Blocking vs non-blocking delay on one event loop (port 3000)
    python -m perfserver

    # Blocking /timer only
    python -m perfserver --variant timer

    # One replica per CPU, all on port 3000
    python -m perfserver --variant cluster

    # Two replicas, verbose logging
    python -m perfserver --variant cluster --workers 2 --log-level DEBUG

=============================================================================
"""

import argparse
import sys

from . import __version__
from .app import Variant, create_app
from .cluster import run_cluster
from .config import ServerConfig, DEFAULT_PORT, LOG_LEVELS


def build_parser() -> argparse.ArgumentParser:
    """Command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="perfserver",
        description="Event loop blocking demos: busy-wait vs timer, one process vs one per core",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m perfserver                          # delay variant on :3000
  python -m perfserver --variant timer          # /timer only
  python -m perfserver --variant cluster        # one replica per CPU
        """
    )

    parser.add_argument(
        "--variant", "-V",
        choices=[variant.value for variant in Variant],
        default=Variant.DELAY.value,
        help="Which demo to run (default: delay)"
    )

    parser.add_argument(
        "--host", "-H",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to listen on (default: {DEFAULT_PORT})"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Replica processes for the cluster variant (default: CPU count)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=list(LOG_LEVELS),
        default="INFO",
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"perfserver {__version__}"
    )

    return parser


def main(argv=None) -> None:
    """Parse arguments, build the configuration, run the chosen variant."""
    args = build_parser().parse_args(argv)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )

    try:
        variant = Variant(args.variant)
        if variant is Variant.CLUSTER:
            run_cluster(config, replicas=args.workers)
        else:
            if args.workers is not None:
                print("Warning: --workers only applies to the cluster variant", file=sys.stderr)
            create_app(variant, config).run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
