"""Session management for connection-oriented transports."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Generic, TypeVar

import anyio

from redash_mcp.errors import MCPError, raise_mcp_error
from redash_mcp.server import MCPServer

HandleT = TypeVar("HandleT")


@dataclass
class SessionData(Generic[HandleT]):
    """Session payload stored by :class:`SessionManager`."""

    server: MCPServer
    handle: HandleT


class SessionManager(Generic[HandleT]):
    """In-memory manager mapping session identifiers to dispatchers.

    Each transport adapter owns its own manager; identifiers are random
    UUID4 strings.
    """

    def __init__(self) -> None:
        """Initialize the session manager with empty state."""
        self._sessions: dict[str, SessionData[HandleT]] = {}
        self._lock = anyio.Lock()

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def create_session(self, server: MCPServer, handle: HandleT) -> str:
        """Register a new session and return its identifier."""
        session_id = str(uuid.uuid4())
        async with self._lock:
            self._sessions[session_id] = SessionData(server=server, handle=handle)
        return session_id

    def get(self, session_id: str) -> SessionData[HandleT]:
        """Retrieve a session or raise an MCP error."""
        data = self._sessions.get(session_id)
        if data is None:
            raise MCPError("SessionNotFound", f"Unknown session_id '{session_id}'")
        return data

    async def close(self, session_id: str) -> SessionData[HandleT]:
        """Remove a session and return what it held."""
        async with self._lock:
            data = self._sessions.pop(session_id, None)
        if data is None:
            raise_mcp_error("SessionNotFound", f"Unknown session_id '{session_id}'")
        return data
