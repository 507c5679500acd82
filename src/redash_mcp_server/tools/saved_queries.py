"""Read-only tools for saved queries and their cached results."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from redash_mcp.tools import ToolDefinition, ToolParameters
from redash_mcp_server.client import RedashClient
from redash_mcp_server.tools.common import translate_errors
from redash_mcp_server.tools.queries import get_query_result


class GetQueryParams(ToolParameters):
    """Parameters for get_query and get_saved_query_result."""

    query_id: int


class SearchQueriesParams(ToolParameters):
    """Parameters for search_queries."""

    q: str
    page: int | None = None
    page_size: int | None = None


class GetQueryResultParams(ToolParameters):
    """Parameters for get_query_result."""

    query_result_id: int


def search_path(params: SearchQueriesParams) -> str:
    """Build the saved-query search path, keeping pagination optional."""
    query: dict[str, str | int] = {"q": params.q}
    if params.page is not None:
        query["page"] = params.page
    if params.page_size is not None:
        query["page_size"] = params.page_size
    return f"/api/queries?{urlencode(query)}"


def get_query_tool(client: RedashClient) -> ToolDefinition:
    """Create the get_query tool definition."""

    async def handler(raw_params: dict[str, Any]) -> dict[str, Any]:
        params = GetQueryParams.model_validate(raw_params)
        with translate_errors():
            return await client.get(f"/api/queries/{params.query_id}")

    return ToolDefinition(
        name="get_query",
        description="Get details of a saved query by its ID, including the SQL text",
        parameters_model=GetQueryParams,
        handler=handler,
    )


def search_queries_tool(client: RedashClient) -> ToolDefinition:
    """Create the search_queries tool definition."""

    async def handler(raw_params: dict[str, Any]) -> dict[str, Any]:
        params = SearchQueriesParams.model_validate(raw_params)
        with translate_errors():
            return await client.get(search_path(params))

    return ToolDefinition(
        name="search_queries",
        description="Search saved queries by keyword",
        parameters_model=SearchQueriesParams,
        handler=handler,
    )


def get_query_result_tool(client: RedashClient) -> ToolDefinition:
    """Create the get_query_result tool definition."""

    async def handler(raw_params: dict[str, Any]) -> dict[str, Any]:
        params = GetQueryResultParams.model_validate(raw_params)
        with translate_errors():
            return await get_query_result(client, params.query_result_id)

    return ToolDefinition(
        name="get_query_result",
        description=(
            "Get an existing query result by its result ID without re-executing "
            "the query"
        ),
        parameters_model=GetQueryResultParams,
        handler=handler,
    )


def get_saved_query_result_tool(client: RedashClient) -> ToolDefinition:
    """Create the get_saved_query_result tool definition."""

    async def handler(raw_params: dict[str, Any]) -> dict[str, Any]:
        params = GetQueryParams.model_validate(raw_params)
        with translate_errors():
            response = await client.get(f"/api/queries/{params.query_id}/results.json")
            return response["query_result"]

    return ToolDefinition(
        name="get_saved_query_result",
        description="Get the latest cached result of a saved query by its query ID",
        parameters_model=GetQueryParams,
        handler=handler,
    )
