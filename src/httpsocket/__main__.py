"""
=============================================================================
HTTPSOCKET CLI ENTRY POINT
=============================================================================

Runs the echo server: every connection gets an HTTPSocket driven by an
EchoHandler, which answers with the request it received.

=============================================================================
USAGE
=============================================================================

    # Run with defaults (localhost:8080)
    python -m httpsocket

    # Custom port
    python -m httpsocket --port 3000

    # Listen on all interfaces (for containers)
    python -m httpsocket --host 0.0.0.0

    # JSON access log
    python -m httpsocket --log-format json

    # Byte-compatible legacy response framing
    python -m httpsocket --legacy-framing

Unset flags fall back to HTTPSOCKET_* environment variables, then to the
ServerConfig defaults.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig
from .handlers import EchoHandler
from .server import HTTPSocketServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpsocket",
        description="Single-exchange HTTP/1.x echo server over raw TCP sockets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpsocket                      # Run with defaults
  python -m httpsocket --port 3000          # Custom port
  python -m httpsocket --host 0.0.0.0       # Listen on all interfaces
  python -m httpsocket --log-format json    # JSON access log
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # HTTP ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--legacy-framing",
        action="store_true",
        help="Omit CRLFs after response headers and the blank line before the body"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpsocket {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Layer CLI arguments over the environment-derived configuration."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    if args.legacy_framing:
        config.legacy_framing = True

    return config


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        server = HTTPSocketServer(config_from_args(args), EchoHandler)
        server.run()
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
