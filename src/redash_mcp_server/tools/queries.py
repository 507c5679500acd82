"""Ad hoc query execution: submit, wait for the job, fetch the result."""

from __future__ import annotations

import logging
from typing import Any, Callable

from redash_mcp.tools import ToolDefinition, ToolParameters
from redash_mcp_server.client import RedashClient
from redash_mcp_server.errors import QueryExecutionError, RedashError
from redash_mcp_server.jobs import JobPoller, JobStatus
from redash_mcp_server.tools.common import translate_errors

logger = logging.getLogger(__name__)

PollerFactory = Callable[[RedashClient], JobPoller]


class ExecuteQueryParams(ToolParameters):
    """Parameters for execute_query_and_wait."""

    data_source_id: int | None = None
    query: str
    max_age: int | None = None


def resolve_data_source_id(client: RedashClient, requested: int | None) -> int:
    """Pick the requested data source, falling back to the configured default."""
    data_source_id = requested or client.settings.default_data_source_id
    if not data_source_id:
        raise RedashError.validation(
            "data_source_id is required either in params or as "
            "DEFAULT_DATA_SOURCE_ID environment variable"
        )
    return data_source_id


async def submit_query(
    client: RedashClient, params: ExecuteQueryParams
) -> dict[str, Any]:
    """POST a query for execution and return the raw response.

    The response holds either ``job`` (execution started) or ``query_result``
    (a cached result young enough for ``max_age``).
    """
    body: dict[str, Any] = {
        "data_source_id": resolve_data_source_id(client, params.data_source_id),
        "query": params.query,
    }
    if params.max_age is not None:
        body["max_age"] = params.max_age
    return await client.post("/api/query_results", body)


async def get_query_result(
    client: RedashClient, query_result_id: int | str
) -> dict[str, Any]:
    """Fetch a materialized query result by id."""
    response = await client.get(f"/api/query_results/{query_result_id}.json")
    return response["query_result"]


async def execute_query_and_wait(
    client: RedashClient,
    params: ExecuteQueryParams,
    poller: JobPoller,
    timeout_ms: int,
    poll_interval_ms: int,
) -> dict[str, Any]:
    """Run a query to completion and return its result."""
    submitted = await submit_query(client, params)
    if "query_result" in submitted:
        return submitted["query_result"]

    job_id = str(submitted["job"]["id"])
    logger.info("Waiting for query job %s", job_id)
    job = await poller.wait_for_job(job_id, timeout_ms, poll_interval_ms)
    if job.status is not JobStatus.SUCCEEDED:
        raise QueryExecutionError(
            f"Query execution failed: {job.error or job.status.value}"
        )
    if job.query_result_id in (None, ""):
        raise QueryExecutionError("Query completed but no result was returned")
    return await get_query_result(client, job.query_result_id)


def execute_query_and_wait_tool(
    client: RedashClient, poller_factory: PollerFactory = JobPoller
) -> ToolDefinition:
    """Create the execute_query_and_wait tool definition."""

    async def handler(raw_params: dict[str, Any]) -> dict[str, Any]:
        params = ExecuteQueryParams.model_validate(raw_params)
        with translate_errors():
            return await execute_query_and_wait(
                client,
                params,
                poller_factory(client),
                client.settings.query_timeout_ms,
                client.settings.poll_interval_ms,
            )

    return ToolDefinition(
        name="execute_query_and_wait",
        description="Execute a SQL query and wait for the results",
        parameters_model=ExecuteQueryParams,
        handler=handler,
    )
