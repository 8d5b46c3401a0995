"""
Command-line entry point.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from perplexity_mcp.config import load_config
from perplexity_mcp.errors import ConfigurationError
from perplexity_mcp.logging_config import get_logger, normalize_log_level, setup_logging
from perplexity_mcp.server import PerplexityMCPServer

logger = get_logger(__name__)

SERVER_NAMES = {
    "stdio": "perplexity-stdio-server",
    "http": "perplexity-streaming-server",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perplexity-mcp",
        description="Expose Perplexity search as an MCP tool",
    )
    parser.add_argument(
        "--transport",
        choices=sorted(SERVER_NAMES),
        default="stdio",
        help="MCP transport to serve (default: stdio)",
    )
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config file")
    parser.add_argument("--host", help="Bind address for the http transport")
    parser.add_argument("--port", type=int, help="Port for the http transport")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_config(args.config)
    except ConfigurationError as e:
        setup_logging(args.log_level or "INFO")
        logger.error(f"Failed to start server: {e}")
        return 1
    if args.host:
        settings.host = args.host
    if args.port is not None:
        settings.port = args.port
    if args.log_level:
        settings.log_level = args.log_level
    settings.log_level = normalize_log_level(settings.log_level)
    setup_logging(settings.log_level)

    if not settings.api_key:
        logger.warning(
            "PERPLEXITY_API_KEY is not set; tool calls must supply a Bearer token"
        )

    server = PerplexityMCPServer(settings, name=SERVER_NAMES[args.transport])
    try:
        if args.transport == "http":
            asyncio.run(server.run_http())
        else:
            asyncio.run(server.run_stdio())
    except KeyboardInterrupt:
        logger.info("Shutting down MCP server...")
    except OSError as e:
        logger.error(f"Failed to start server: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
