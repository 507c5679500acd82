"""Starlette application serving the MCP dispatcher over HTTP.

Two connection-oriented transports share this module:

* Streamable HTTP on ``/mcp``. The ``mcp-session-id`` header selects the
  session; an ``initialize`` request without the header opens a new one.
* Server-Sent Events on ``/sse`` with client messages posted to
  ``/messages?sessionId=...``. Responses are pushed down the event stream.

Each session owns a fresh :class:`MCPServer` built by the server factory.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import anyio
import uvicorn
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.types import INTERNAL_ERROR, INVALID_REQUEST, PARSE_ERROR
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import (
    JSONResponse,
    PlainTextResponse,
    Response,
    StreamingResponse,
)
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from redash_mcp.errors import MCPError
from redash_mcp.server import MCPServer
from redash_mcp_server.jsonrpc import (
    JsonRpcSession,
    contains_initialize_request,
    error_envelope,
)
from redash_mcp_server.session_manager import SessionManager

logger = logging.getLogger(__name__)

SESSION_HEADER = "mcp-session-id"
SESSION_NOT_FOUND = -32001
METHOD_NOT_ALLOWED = -32000
ALLOWED_METHODS = ("GET", "POST", "DELETE")
SSE_BUFFER_SIZE = 64

ServerFactory = Callable[[], MCPServer]


@dataclass
class StreamableSession:
    """Transport handle for a streamable HTTP session."""

    rpc: JsonRpcSession
    closed: anyio.Event = field(default_factory=anyio.Event)


@dataclass
class SseSession:
    """Transport handle for an SSE session: the queue feeding its stream."""

    rpc: JsonRpcSession
    send: MemoryObjectSendStream[Any]
    receive: MemoryObjectReceiveStream[Any]


def _rpc_error(status_code: int, code: int, message: str) -> JSONResponse:
    return JSONResponse(error_envelope(code, message), status_code=status_code)


def _session_not_found() -> JSONResponse:
    return _rpc_error(404, SESSION_NOT_FOUND, "Session not found")


def _no_transport() -> PlainTextResponse:
    return PlainTextResponse("No transport found for sessionId", status_code=400)


def _sse_event(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


class _AnyMethodEndpoint:
    """ASGI endpoint accepting every HTTP verb; the handler decides what to allow."""

    def __init__(self, handler: Callable[[Request], Awaitable[Response]]) -> None:
        self._handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = await self._handler(Request(scope, receive))
        await response(scope, receive, send)


class HttpTransport:
    """Session-multiplexing adapter between HTTP requests and dispatchers."""

    def __init__(
        self,
        server_factory: ServerFactory,
        *,
        mcp_path: str = "/mcp",
        sse_path: str = "/sse",
        messages_path: str = "/messages",
    ) -> None:
        self._server_factory = server_factory
        self.messages_path = messages_path
        self.sessions: SessionManager[StreamableSession] = SessionManager()
        self.sse_sessions: SessionManager[SseSession] = SessionManager()
        self.app = Starlette(
            routes=[
                Route(mcp_path, _AnyMethodEndpoint(self.handle_mcp)),
                Route(sse_path, self.handle_sse, methods=["GET"]),
                Route(messages_path, self.handle_messages, methods=["POST"]),
            ]
        )

    # Streamable HTTP

    async def handle_mcp(self, request: Request) -> Response:
        handlers = {
            "POST": self._post,
            "GET": self._get,
            "DELETE": self._delete,
        }
        handler = handlers.get(request.method)
        if handler is None:
            response = _rpc_error(405, METHOD_NOT_ALLOWED, "Method not allowed")
            response.headers["Allow"] = ", ".join(ALLOWED_METHODS)
            return response
        try:
            return await handler(request)
        except Exception:
            logger.exception("Error handling %s %s", request.method, request.url.path)
            return _rpc_error(500, INTERNAL_ERROR, "Internal error")

    async def _post(self, request: Request) -> Response:
        try:
            payload = json.loads(await request.body())
        except ValueError:
            return _rpc_error(400, PARSE_ERROR, "Parse error: Invalid JSON")

        session_id = request.headers.get(SESSION_HEADER)
        if session_id:
            try:
                data = self.sessions.get(session_id)
            except MCPError:
                return _session_not_found()
            return await self._reply(data.handle, payload)

        if not contains_initialize_request(payload):
            return _rpc_error(
                400,
                INVALID_REQUEST,
                "Bad Request: Missing session ID or invalid initialize request",
            )

        session_id, handle = await self.open_session()
        response = await self._reply(handle, payload)
        response.headers[SESSION_HEADER] = session_id
        return response

    async def _get(self, request: Request) -> Response:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id or session_id not in self.sessions:
            return _session_not_found()
        handle = self.sessions.get(session_id).handle
        return StreamingResponse(
            self._hold_open(handle), media_type="text/event-stream"
        )

    async def _delete(self, request: Request) -> Response:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return _session_not_found()
        try:
            await self.close_session(session_id)
        except MCPError:
            return _session_not_found()
        return Response(status_code=200)

    async def open_session(self) -> tuple[str, StreamableSession]:
        """Create a streamable HTTP session bound to a new dispatcher."""
        server = self._server_factory()
        handle = StreamableSession(rpc=JsonRpcSession(server))
        session_id = await self.sessions.create_session(server, handle)
        logger.info("Opened session %s", session_id)
        return session_id, handle

    async def close_session(self, session_id: str) -> None:
        """Forget a streamable HTTP session and release its open streams."""
        data = await self.sessions.close(session_id)
        data.handle.closed.set()
        logger.info("Closed session %s", session_id)

    async def _reply(self, handle: StreamableSession, payload: object) -> Response:
        reply = await handle.rpc.handle_payload(payload)
        if reply is None:
            return Response(status_code=202)
        return JSONResponse(reply)

    @staticmethod
    async def _hold_open(handle: StreamableSession) -> AsyncIterator[str]:
        yield ": stream open\n\n"
        await handle.closed.wait()

    # Server-Sent Events

    async def handle_sse(self, request: Request) -> Response:
        session_id, handle = await self.open_sse_session()
        return StreamingResponse(
            self._sse_events(session_id, handle), media_type="text/event-stream"
        )

    async def handle_messages(self, request: Request) -> Response:
        session_id = request.query_params.get("sessionId")
        if not session_id or session_id not in self.sse_sessions:
            return _no_transport()
        try:
            payload = json.loads(await request.body())
        except ValueError:
            return PlainTextResponse("Parse error: Invalid JSON", status_code=400)
        if not await self.deliver_sse_message(session_id, payload):
            return _no_transport()
        return PlainTextResponse("Accepted", status_code=202)

    async def open_sse_session(self) -> tuple[str, SseSession]:
        """Create an SSE session and the queue that feeds its event stream."""
        server = self._server_factory()
        send, receive = anyio.create_memory_object_stream(SSE_BUFFER_SIZE)
        handle = SseSession(rpc=JsonRpcSession(server), send=send, receive=receive)
        session_id = await self.sse_sessions.create_session(server, handle)
        logger.info("Opened SSE session %s", session_id)
        return session_id, handle

    async def close_sse_session(self, session_id: str) -> None:
        """Forget an SSE session once its stream has gone away."""
        try:
            data = await self.sse_sessions.close(session_id)
        except MCPError:
            return
        data.handle.send.close()
        logger.info("Closed SSE session %s", session_id)

    async def deliver_sse_message(self, session_id: str, payload: object) -> bool:
        """Dispatch a posted message and queue the reply on the session stream.

        Returns False when the session does not exist or its stream is gone.
        """
        try:
            handle = self.sse_sessions.get(session_id).handle
        except MCPError:
            return False
        reply = await handle.rpc.handle_payload(payload)
        if reply is None:
            return True
        try:
            await handle.send.send(reply)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            await self.close_sse_session(session_id)
            return False
        return True

    async def _sse_events(
        self, session_id: str, handle: SseSession
    ) -> AsyncIterator[str]:
        try:
            yield _sse_event("endpoint", f"{self.messages_path}?sessionId={session_id}")
            async with handle.receive:
                async for message in handle.receive:
                    yield _sse_event("message", json.dumps(message))
        finally:
            with anyio.CancelScope(shield=True):
                await self.close_sse_session(session_id)


def serve(transport: HttpTransport, host: str, port: int) -> None:
    """Run the HTTP transport with uvicorn until interrupted."""
    logger.info("Redash MCP Server listening on http://%s:%s", host, port)
    uvicorn.run(transport.app, host=host, port=port)
