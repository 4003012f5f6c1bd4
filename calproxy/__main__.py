"""Command-line entry for calproxy."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import NoReturn, Optional

from . import run_server
from .core.exceptions import CalProxyError

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calproxy CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calproxy",
        description="calproxy - serve a private ICS feed and its free/busy view",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration is read from CALPROXY_* environment variables (or a .env file):
  CALPROXY_ORIGIN       origin ICS URL (prompted for if unset)
  CALPROXY_SECRET       shared secret for the raw calendar URL
  CALPROXY_PORT         listen port
  CALPROXY_UPDATE_SECS  refresh interval in seconds (default: 960)
  CALPROXY_FB_TITLE     title of every free/busy event (default: Busy)

Examples:
  python -m calproxy --port 8080
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port to listen on (overrides CALPROXY_PORT)",
    )
    parser.add_argument(
        "--update-secs",
        type=int,
        metavar="SECONDS",
        help="Refresh interval in seconds (overrides CALPROXY_UPDATE_SECS)",
    )
    parser.add_argument(
        "--env-file",
        metavar="PATH",
        help="Path to a .env file (default: ./.env)",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the calproxy CLI.

    Exits with status 1 on configuration errors and on a failed initial fetch.
    """
    args = _create_parser().parse_args(argv)

    try:
        run_server(args)
    except CalProxyError as exc:
        logger.critical("%s: %s", type(exc).__name__, exc)
        sys.exit(1)
    except OSError as exc:
        logger.critical("Could not start server: %s", exc)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
