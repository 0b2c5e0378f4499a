"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    mdb-http-server <server_port> <web_root> <mdb_lookup_host> <mdb_lookup_port>

    # same thing
    python -m mdbserver 8888 ./www localhost 9999

    # one connection at a time, no worker threads
    python -m mdbserver 8888 ./www localhost 9999 --sequential

Exit status:
    0   clean shutdown (Ctrl+C / SIGTERM)
    1   startup failure: bad configuration, backend unreachable, bind failed
    2   usage error (wrong number of arguments), reported by argparse

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig
from .core import BackendError
from .server import HTTPServer


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdb-http-server",
        description="HTTP/1.0 server for static files and mdb-lookup queries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mdb-http-server 8888 ./www localhost 9999
  mdb-http-server 8888 ./www lookup.example.com 9999 --workers 8
  mdb-http-server 8888 ./www localhost 9999 --sequential --log-level DEBUG
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # POSITIONAL ARGUMENTS (all four required)
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("server_port", type=int, help="Port to listen on")
    parser.add_argument("web_root", help="Directory to serve static files from")
    parser.add_argument("mdb_lookup_host", help="Host running mdb-lookup-server")
    parser.add_argument("mdb_lookup_port", type=int, help="Port of mdb-lookup-server")

    # ─────────────────────────────────────────────────────────────────────
    # OPTIONS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=4,
        help="Number of worker threads (default: 4, max will be 2x this)",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Handle one connection at a time, no worker threads",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Client socket timeout in seconds, 0 for none (default: 30)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Access log format (default: text)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"mdb-http-server {__version__}",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Translate parsed CLI arguments into a ServerConfig."""
    return ServerConfig(
        port=args.server_port,
        web_root=args.web_root,
        backend_host=args.mdb_lookup_host,
        backend_port=args.mdb_lookup_port,
        timeout=args.timeout or None,
        concurrent=not args.sequential,
        min_workers=args.workers,
        max_workers=args.workers * 2,
        log_level=args.log_level,
        log_format=args.log_format,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the server from the command line.

    Returns:
        Process exit status.
    """
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    try:
        server = HTTPServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except BackendError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
