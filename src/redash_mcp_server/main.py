"""Entry point for the Redash MCP server."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from redash_mcp_server.client import RedashClient
from redash_mcp_server.config import ConfigurationError, port_from_env, settings
from redash_mcp_server.fastmcp_adapter import build_fastmcp_app
from redash_mcp_server.http_transport import HttpTransport, serve
from redash_mcp_server.tools import build_server

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "sse", "streamable-http")


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the server CLI."""
    parser = argparse.ArgumentParser(description="Redash MCP server")
    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default="stdio",
        help="Transport used to serve MCP clients.",
    )
    parser.add_argument(
        "--sse",
        dest="transport",
        action="store_const",
        const="sse",
        help="Shorthand for --transport sse.",
    )
    parser.add_argument(
        "--streamable-http",
        dest="transport",
        action="store_const",
        const="streamable-http",
        help="Shorthand for --transport streamable-http.",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind address for HTTP.")
    parser.add_argument(
        "--port", type=int, default=None, help="Port for HTTP (default: $PORT or 3000)."
    )
    parser.add_argument("--catalog", action="store_true", help="Print the tool catalog")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity (logs go to stderr).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Register tools and serve them over the selected transport."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    client = RedashClient()
    if args.catalog:
        print(json.dumps(build_server(client).to_catalog(), indent=2))
        return 0

    try:
        settings.resolve()
        port = args.port if args.port is not None else port_from_env()
    except ConfigurationError as error:
        logger.error("%s", error)
        return 1

    if args.transport == "stdio":
        app, _ = build_fastmcp_app(build_server(client))
        logger.info("Redash MCP Server running on stdio")
        app.run(transport="stdio")
        return 0

    serve(HttpTransport(lambda: build_server(client)), args.host, port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
