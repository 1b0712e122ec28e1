#!/usr/bin/env python3
"""
Canvas MCP Server - Main Entry Point

Read-only access to Canvas LMS for AI agents over MCP (JSON-RPC over HTTP
with server-sent events for session negotiation).

Usage:
    python -m canvas_mcp.main                   # Serve on PORT (default 8080)
    python -m canvas_mcp.main --verbose         # Enable debug logging
    python -m canvas_mcp.main --addon-options   # Read Home Assistant add-on options first

Environment Variables Required:
    CANVAS_BASE_URL         - Canvas instance URL (e.g., https://canvas.instructure.com)
    CANVAS_API_TOKEN        - Canvas Personal Access Token

Optional:
    CANVAS_TIMEOUT_MS, PORT, HOST, BASE_PATH, ALLOWED_ORIGINS, MCP_AUTH_TOKEN, LOG_LEVEL
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Add project root to path for imports if running as script
if __name__ == "__main__" and __package__ is None:
    PROJECT_ROOT = Path(__file__).parent.parent
    sys.path.insert(0, str(PROJECT_ROOT))

import uvicorn

from config.settings import (
    DEFAULT_ADDON_OPTIONS_PATH,
    ConfigurationError,
    load_addon_options,
    load_settings,
)
from canvas_mcp.canvas.client import CanvasClient
from canvas_mcp.server.app import create_app


def setup_logging(verbose: bool = False, level_name: str = "INFO") -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, enable DEBUG level logging
        level_name: Level from configuration when not verbose
    """
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Reduce noise from external libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Read-only Canvas LMS tools for AI agents over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m canvas_mcp.main                      # Serve with .env / environment
    python -m canvas_mcp.main --port 9000          # Override listen port
    python -m canvas_mcp.main --env .env.local     # Use custom env file
    python -m canvas_mcp.main --addon-options      # Home Assistant add-on mode
        """,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    parser.add_argument(
        "--env",
        type=Path,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--addon-options",
        type=Path,
        nargs="?",
        const=DEFAULT_ADDON_OPTIONS_PATH,
        help=f"Load Home Assistant add-on options (default path: {DEFAULT_ADDON_OPTIONS_PATH})",
    )

    parser.add_argument(
        "--host",
        help="Bind address (overrides HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Listen port (overrides PORT)",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    if args.addon_options:
        load_addon_options(args.addon_options)

    # Load configuration
    try:
        settings = load_settings(env_file=args.env)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please set CANVAS_BASE_URL and CANVAS_API_TOKEN in your .env file")
        logger.error("See .env.example for required configuration")
        return 1

    if not args.verbose:
        setup_logging(level_name=settings.log_level)

    try:
        server = replace(
            settings.server,
            host=args.host or settings.server.host,
            port=args.port or settings.server.port,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    host, port = server.host, server.port

    client = CanvasClient(
        base_url=settings.canvas.base_url,
        access_token=settings.canvas.api_token,
        timeout_ms=settings.canvas.timeout_ms,
    )

    try:
        app = create_app(client, server)

        logger.info(f"Canvas MCP server running on http://{host}:{port}")
        logger.info(f"MCP endpoint: http://{host}:{port}{server.base_path}")
        logger.info(f"Health check: http://{host}:{port}/healthz")
        logger.info(f"Allowed origins: {', '.join(server.allowed_origins)}")
        logger.info(f"Canvas timeout: {client.timeout_ms}ms")
        if server.auth_enabled:
            logger.info("MCP auth: Bearer token required")
        else:
            logger.info("MCP auth: disabled (no-auth mode)")

        uvicorn.run(app, host=host, port=port, log_level="warning")
        return 0

    except KeyboardInterrupt:
        logger.info("Server interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
