"""
SSE transport for MCP.

- GET /sse        opens a session; the first event names the message endpoint
- POST /messages  routes a JSON-RPC message to its session
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ..services.session_registry import resolve_session_candidate
from ..utils.errors import NoActiveSessionError

logger = logging.getLogger("popui.sessions")

router = APIRouter()

MESSAGES_PATH = "/messages"


def _sse_event(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


@router.get("/sse")
async def open_sse_stream(request: Request):
    """
    Open a long-lived MCP session.

    The session stays registered until the client disconnects or the
    server stops.
    """
    registry = request.app.state.registry
    protocol = request.app.state.protocol
    heartbeat = request.app.state.settings.sse_heartbeat_interval

    session = registry.register(protocol.handle_message)
    root_path = request.scope.get("root_path", "")
    endpoint = f"{root_path}{MESSAGES_PATH}?sessionId={session.session_id}"

    async def event_generator():
        try:
            yield _sse_event("endpoint", endpoint)
            while True:
                try:
                    payload = await asyncio.wait_for(session.queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
                    continue
                if payload is None:
                    break
                yield _sse_event("message", json.dumps(payload))
        finally:
            registry.deregister(session.session_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "X-Session-Id": session.session_id,
        }
    )


@router.post(MESSAGES_PATH)
async def submit_message(request: Request):
    """
    Deliver a JSON-RPC message to a session.

    The session id is taken from the body, the X-Session-Id header or the
    sessionId query parameter, in that order. The answer travels over the
    session's SSE stream.
    """
    registry = request.app.state.registry

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(
            status_code=400,
            content={
                "jsonrpc": "2.0",
                "error": {"code": -32700, "message": "Parse error"},
                "id": None
            }
        )

    logger.debug(f"Received POST to {MESSAGES_PATH}")
    candidate = resolve_session_candidate(body, request.headers, request.query_params)

    try:
        session = await registry.route(candidate, body)
    except NoActiveSessionError as exc:
        logger.warning(f"Rejected message: {exc.message}")
        return JSONResponse(status_code=503, content={"error": exc.message})
    except Exception as exc:
        logger.error(f"Error handling POST message: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to handle message", "details": str(exc)},
        )

    return Response(content="Accepted", status_code=202, headers={"X-Session-Id": session.session_id})
