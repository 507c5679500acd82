"""Shared helpers for MCP tools."""

from __future__ import annotations

import base64
from collections.abc import Iterator
from contextlib import contextmanager

from redash_mcp.errors import MCPError
from redash_mcp_server.errors import JobError, RedashError, format_redash_error


@contextmanager
def translate_errors() -> Iterator[None]:
    """Convert Redash and job failures into MCP-friendly errors.

    Anything that is not a Redash or job failure propagates unchanged.
    """
    try:
        yield
    except RedashError as error:
        raise MCPError(
            "RedashAPIError",
            format_redash_error(error),
            {"kind": error.kind.value, "status_code": error.status_code},
        ) from error
    except JobError as error:
        raise MCPError(error.error_type, str(error)) from error


def encode_base64(content: str) -> str:
    """Encode UTF-8 text as base64."""
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def decode_base64(content: str) -> str:
    """Decode base64 content back into UTF-8 text."""
    return base64.b64decode(content).decode("utf-8")
