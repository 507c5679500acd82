"""End-to-end coverage for the Redash tools through the dispatcher."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from redash_mcp.errors import MCPError
from redash_mcp.server import MCPServer
from redash_mcp_server.client import RedashClient
from redash_mcp_server.config import Settings
from redash_mcp_server.jobs import JobPoller
from redash_mcp_server.tools import build_server, build_tools
from redash_mcp_server.tools.common import decode_base64, encode_base64
from tests.helpers import BASE_URL, FakeClock

RESULT = {"id": 200, "query": "SELECT 1", "data": {"rows": [{"a": 1}]}}


@pytest.fixture()
def server(client: RedashClient) -> MCPServer:
    """Dispatcher with the Redash toolset bound to the fake host."""
    return build_server(client)


def test_toolset_is_fixed_and_ordered(client: RedashClient) -> None:
    """The seven tools are registered in a stable order."""
    assert [tool.name for tool in build_tools(client)] == [
        "execute_query_and_wait",
        "list_data_sources",
        "get_data_source",
        "get_query",
        "search_queries",
        "get_query_result",
        "get_saved_query_result",
    ]


@pytest.mark.anyio()
async def test_execute_query_and_wait_uses_default_data_source(
    server: MCPServer,
) -> None:
    """A query with no data source runs against the configured default."""
    with respx.mock(base_url=BASE_URL) as router:
        submit = router.post("/api/query_results").mock(
            return_value=httpx.Response(200, json={"job": {"id": "j1", "status": 1}})
        )
        router.get("/api/jobs/j1").mock(
            return_value=httpx.Response(
                200, json={"job": {"id": "j1", "status": 3, "query_result_id": 200}}
            )
        )
        router.get("/api/query_results/200.json").mock(
            return_value=httpx.Response(200, json={"query_result": RESULT})
        )

        result = await server.call_tool("execute_query_and_wait", {"query": "SELECT 1"})

    assert result.text == json.dumps(RESULT, indent=2)
    assert json.loads(submit.calls.last.request.content) == {
        "data_source_id": 1,
        "query": "SELECT 1",
    }


@pytest.mark.anyio()
async def test_execute_query_returns_cached_result_without_polling(
    server: MCPServer,
) -> None:
    """A cache hit on submission is returned directly."""
    with respx.mock(base_url=BASE_URL) as router:
        submit = router.post("/api/query_results").mock(
            return_value=httpx.Response(200, json={"query_result": RESULT})
        )

        result = await server.call_tool(
            "execute_query_and_wait",
            {"query": "SELECT 1", "data_source_id": 7, "max_age": 60},
        )

    assert json.loads(result.text) == RESULT
    assert json.loads(submit.calls.last.request.content) == {
        "data_source_id": 7,
        "query": "SELECT 1",
        "max_age": 60,
    }


@pytest.mark.anyio()
async def test_execute_query_requires_a_data_source() -> None:
    """Without argument or default the call fails before any request."""
    server = build_server(RedashClient(Settings(api_key="k", base_url=BASE_URL)))

    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        submit = router.post("/api/query_results")

        with pytest.raises(MCPError) as error_info:
            await server.call_tool("execute_query_and_wait", {"query": "SELECT 1"})

    assert not submit.called
    message = str(error_info.value)
    assert "data_source_id" in message
    assert "DEFAULT_DATA_SOURCE_ID environment variable" in message
    assert "(Status: 400)" in message


@pytest.mark.anyio()
async def test_failed_job_reports_backend_error_verbatim(server: MCPServer) -> None:
    """A failed job surfaces the backend's error text."""
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/api/query_results").mock(
            return_value=httpx.Response(200, json={"job": {"id": "j1", "status": 1}})
        )
        router.get("/api/jobs/j1").mock(
            return_value=httpx.Response(
                200,
                json={
                    "job": {"id": "j1", "status": 4, "error": 'relation "x" missing'}
                },
            )
        )

        with pytest.raises(MCPError) as error_info:
            await server.call_tool(
                "execute_query_and_wait", {"query": "SELECT * FROM x"}
            )

    assert error_info.value.error_type == "QueryExecutionError"
    assert str(error_info.value) == 'Query execution failed: relation "x" missing'


@pytest.mark.anyio()
async def test_succeeded_job_without_result_is_reported(server: MCPServer) -> None:
    """Success without a result reference is a distinct failure."""
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/api/query_results").mock(
            return_value=httpx.Response(200, json={"job": {"id": "j1", "status": 1}})
        )
        router.get("/api/jobs/j1").mock(
            return_value=httpx.Response(200, json={"job": {"id": "j1", "status": 3}})
        )

        with pytest.raises(MCPError) as error_info:
            await server.call_tool("execute_query_and_wait", {"query": "SELECT 1"})

    assert str(error_info.value) == "Query completed but no result was returned"


@pytest.mark.anyio()
async def test_job_timeout_surfaces_through_tool(
    client: RedashClient, fake_clock: FakeClock
) -> None:
    """A poll timeout is reported, never swallowed."""
    settings = client.settings.model_copy(
        update={"query_timeout_ms": 500, "poll_interval_ms": 200}
    )
    slow_client = RedashClient(settings)
    server = build_server(
        slow_client,
        poller_factory=lambda c: JobPoller(
            c, clock=fake_clock, sleep=fake_clock.sleep
        ),
    )

    with respx.mock(base_url=BASE_URL) as router:
        router.post("/api/query_results").mock(
            return_value=httpx.Response(200, json={"job": {"id": "j1", "status": 1}})
        )
        jobs = router.get("/api/jobs/j1").mock(
            return_value=httpx.Response(200, json={"job": {"id": "j1", "status": 2}})
        )

        with pytest.raises(MCPError) as error_info:
            await server.call_tool("execute_query_and_wait", {"query": "SELECT 1"})

    assert error_info.value.error_type == "JobTimeout"
    assert "500" in str(error_info.value)
    assert jobs.call_count == 3


@pytest.mark.anyio()
async def test_expired_job_message(server: MCPServer) -> None:
    """A job that vanished mid-poll is reported as expired."""
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/api/query_results").mock(
            return_value=httpx.Response(200, json={"job": {"id": "j9", "status": 1}})
        )
        router.get("/api/jobs/j9").mock(return_value=httpx.Response(404))

        with pytest.raises(MCPError) as error_info:
            await server.call_tool("execute_query_and_wait", {"query": "SELECT 1"})

    assert "may have expired or been deleted" in str(error_info.value)


@pytest.mark.anyio()
async def test_list_and_get_data_sources(server: MCPServer) -> None:
    """Data source tools pass backend payloads through as JSON text."""
    sources = [{"id": 1, "name": "warehouse", "type": "pg"}]
    with respx.mock(base_url=BASE_URL) as router:
        router.get("/api/data_sources").mock(
            return_value=httpx.Response(200, json=sources)
        )
        router.get("/api/data_sources/1").mock(
            return_value=httpx.Response(200, json=sources[0])
        )

        listed = await server.call_tool("list_data_sources", {})
        single = await server.call_tool("get_data_source", {"data_source_id": 1})

    assert json.loads(listed.text) == sources
    assert json.loads(single.text) == sources[0]


@pytest.mark.anyio()
async def test_missing_data_source_is_formatted(server: MCPServer) -> None:
    """Backend failures reach the caller as one formatted diagnostic."""
    with respx.mock(base_url=BASE_URL) as router:
        router.get("/api/data_sources/99").mock(
            return_value=httpx.Response(404, json={"message": "Data source 99 gone"})
        )

        with pytest.raises(MCPError) as error_info:
            await server.call_tool("get_data_source", {"data_source_id": 99})

    assert str(error_info.value) == (
        "Redash API Error: Resource not found (Status: 404)\n"
        "Details: Data source 99 gone"
    )


@pytest.mark.anyio()
async def test_saved_query_lookups(server: MCPServer) -> None:
    """Saved query tools hit the matching endpoints."""
    saved = {"id": 5, "name": "Daily users", "query": "SELECT count(*) FROM users"}
    with respx.mock(base_url=BASE_URL) as router:
        router.get("/api/queries/5").mock(return_value=httpx.Response(200, json=saved))
        router.get("/api/queries/5/results.json").mock(
            return_value=httpx.Response(200, json={"query_result": RESULT})
        )
        router.get("/api/query_results/200.json").mock(
            return_value=httpx.Response(200, json={"query_result": RESULT})
        )

        query = await server.call_tool("get_query", {"query_id": 5})
        latest = await server.call_tool("get_saved_query_result", {"query_id": 5})
        by_id = await server.call_tool("get_query_result", {"query_result_id": 200})

    assert json.loads(query.text) == saved
    assert json.loads(latest.text) == RESULT
    assert json.loads(by_id.text) == RESULT


@pytest.mark.anyio()
async def test_search_queries_pagination_is_optional(server: MCPServer) -> None:
    """Only the supplied pagination parameters are sent."""
    with respx.mock(base_url=BASE_URL) as router:
        route = router.get("/api/queries").mock(
            return_value=httpx.Response(200, json={"count": 0, "results": []})
        )

        await server.call_tool("search_queries", {"q": "daily users"})
        await server.call_tool("search_queries", {"q": "x", "page": 2, "page_size": 5})

    first, second = (call.request.url for call in route.calls)
    assert dict(first.params) == {"q": "daily users"}
    assert dict(second.params) == {"q": "x", "page": "2", "page_size": "5"}


@pytest.mark.anyio()
async def test_invalid_arguments_are_rejected_before_network(
    server: MCPServer,
) -> None:
    """Schema violations list the offending fields."""
    with pytest.raises(MCPError) as error_info:
        await server.call_tool("get_query", {"query_id": "latest"})

    assert error_info.value.error_type == "InvalidInput"
    assert error_info.value.details[0]["loc"] == ["query_id"]


def test_base64_round_trip() -> None:
    """Text, including multi-byte characters, survives encode then decode."""
    for text in ["SELECT 1", "データソース ✓", ""]:
        assert decode_base64(encode_base64(text)) == text
    assert encode_base64("") == ""
