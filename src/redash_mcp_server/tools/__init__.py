"""Tool registration helpers for the Redash MCP server."""

from __future__ import annotations

from redash_mcp import __version__
from redash_mcp.server import MCPServer
from redash_mcp.tools import ToolDefinition
from redash_mcp_server.client import RedashClient
from redash_mcp_server.jobs import JobPoller
from redash_mcp_server.tools.data_sources import (
    get_data_source_tool,
    list_data_sources_tool,
)
from redash_mcp_server.tools.queries import PollerFactory, execute_query_and_wait_tool
from redash_mcp_server.tools.saved_queries import (
    get_query_result_tool,
    get_query_tool,
    get_saved_query_result_tool,
    search_queries_tool,
)

SERVER_NAME = "redash-mcp-server"


def build_tools(
    client: RedashClient, poller_factory: PollerFactory = JobPoller
) -> list[ToolDefinition]:
    """Instantiate all tool definitions bound to the provided client."""
    return [
        execute_query_and_wait_tool(client, poller_factory),
        list_data_sources_tool(client),
        get_data_source_tool(client),
        get_query_tool(client),
        search_queries_tool(client),
        get_query_result_tool(client),
        get_saved_query_result_tool(client),
    ]


def build_server(
    client: RedashClient, poller_factory: PollerFactory = JobPoller
) -> MCPServer:
    """Create a dispatcher with the full Redash toolset registered."""
    server = MCPServer(name=SERVER_NAME, version=__version__)
    server.register_tools(*build_tools(client, poller_factory))
    return server
