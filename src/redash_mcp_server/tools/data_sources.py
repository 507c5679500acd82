"""Tools for browsing Redash data sources."""

from __future__ import annotations

from typing import Any

from redash_mcp.tools import ToolDefinition, ToolParameters
from redash_mcp_server.client import RedashClient
from redash_mcp_server.tools.common import translate_errors


class ListDataSourcesParams(ToolParameters):
    """list_data_sources takes no parameters."""


class DataSourceParams(ToolParameters):
    """Parameters for get_data_source."""

    data_source_id: int


def list_data_sources_tool(client: RedashClient) -> ToolDefinition:
    """Create the list_data_sources tool definition."""

    async def handler(_: dict[str, Any]) -> list[dict[str, Any]]:
        with translate_errors():
            return await client.get("/api/data_sources")

    return ToolDefinition(
        name="list_data_sources",
        description="List all available data sources",
        parameters_model=ListDataSourcesParams,
        handler=handler,
    )


def get_data_source_tool(client: RedashClient) -> ToolDefinition:
    """Create the get_data_source tool definition."""

    async def handler(raw_params: dict[str, Any]) -> dict[str, Any]:
        params = DataSourceParams.model_validate(raw_params)
        with translate_errors():
            return await client.get(f"/api/data_sources/{params.data_source_id}")

    return ToolDefinition(
        name="get_data_source",
        description="Get details about a specific data source",
        parameters_model=DataSourceParams,
        handler=handler,
    )
