"""Model Context Protocol server for the Redash API."""

from redash_mcp_server.client import RedashClient
from redash_mcp_server.errors import RedashError, RedashErrorKind, format_redash_error
from redash_mcp_server.jobs import JobPoller, JobStatus
from redash_mcp_server.tools import build_server, build_tools

__all__ = [
    "JobPoller",
    "JobStatus",
    "RedashClient",
    "RedashError",
    "RedashErrorKind",
    "build_server",
    "build_tools",
    "format_redash_error",
]
