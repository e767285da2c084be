"""
MCP JSON-RPC handling for one routed message.

Responses are pushed onto the session that received the request; the
message endpoint itself only acknowledges delivery.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .. import __version__
from ..services.session_registry import Session
from ..utils.errors import InternalError, NoActiveSessionError, NotFoundError
from .dispatcher import ToolDispatcher
from .resources import ResourceLister
from .tools import POP_UI_TOOL_NAME, get_tools

logger = logging.getLogger("popui.mcp")

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
RESOURCE_NOT_FOUND = -32002

RESOURCES_LIST_CHANGED = "notifications/resources/list_changed"


class JsonRpcError(Exception):
    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def rpc_result(req_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


def rpc_error(req_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": error}


def list_changed_notification() -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "method": RESOURCES_LIST_CHANGED}


class McpProtocol:
    """Method table for the pop-ui MCP server."""

    def __init__(self, dispatcher: ToolDispatcher, lister: ResourceLister, server_name: str = "PopUI"):
        self.dispatcher = dispatcher
        self.lister = lister
        self.server_info = {"name": server_name, "version": __version__}
        self._methods: Dict[str, Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/templates/list": self._resources_templates_list,
            "resources/read": self._resources_read,
        }

    async def handle_message(self, session: Session, message: Any) -> None:
        """Session handler: answer ``message`` over the session's stream.

        An internal failure is answered with a JSON-RPC error and then
        re-raised so the message endpoint reports it too. A response that
        cannot be queued because the session closed meanwhile raises
        ``NoActiveSessionError``.
        """
        response, failure = await self.respond(message)
        if response is not None and not await session.send(response):
            raise NoActiveSessionError(
                f"Session {session.session_id} closed before the response was delivered"
            ) from failure
        if failure is not None:
            raise failure

    async def respond(self, message: Any) -> Tuple[Optional[Any], Optional[Exception]]:
        if isinstance(message, list):
            if not message:
                return rpc_error(None, INVALID_REQUEST, "Invalid Request: empty batch"), None
            responses: List[Dict[str, Any]] = []
            failure: Optional[Exception] = None
            for item in message:
                response, item_failure = await self._respond_single(item)
                if response is not None:
                    responses.append(response)
                failure = failure or item_failure
            return (responses or None), failure
        return await self._respond_single(message)

    async def _respond_single(self, message: Any) -> Tuple[Optional[Dict[str, Any]], Optional[Exception]]:
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
            req_id = message.get("id") if isinstance(message, dict) else None
            return rpc_error(req_id, INVALID_REQUEST, "Invalid Request"), None

        method = message.get("method")
        if method is None:
            # Response to a server-initiated request; nothing to answer
            logger.debug(f"Ignoring client response for id={message.get('id')}")
            return None, None
        if not isinstance(method, str):
            return rpc_error(message.get("id"), INVALID_REQUEST, "Invalid Request"), None

        is_notification = "id" not in message
        req_id = message.get("id")
        params = message.get("params") or {}

        if is_notification:
            logger.debug(f"MCP notification: {method}")
            return None, None

        handler = self._methods.get(method)
        if handler is None:
            return rpc_error(req_id, METHOD_NOT_FOUND, f"Method not found: {method}"), None
        if not isinstance(params, dict):
            return rpc_error(req_id, INVALID_PARAMS, "params must be an object"), None

        logger.info(f"MCP request: method={method}")
        try:
            result = await handler(params)
        except JsonRpcError as exc:
            return rpc_error(req_id, exc.code, exc.message, exc.data), None
        except NotFoundError as exc:
            return rpc_error(req_id, RESOURCE_NOT_FOUND, exc.message), None
        except InternalError as exc:
            logger.error(f"MCP {method} failed: {exc.message}")
            return rpc_error(req_id, INTERNAL_ERROR, exc.message), exc
        except Exception as exc:
            logger.exception(f"Unexpected error in MCP {method}")
            return rpc_error(req_id, INTERNAL_ERROR, f"Internal error: {exc}"), exc
        return rpc_result(req_id, result), None

    async def _initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        client = params.get("clientInfo") or {}
        logger.info(f"Initialize from {client.get('name', 'unknown')} (protocol {version})")
        return {
            "protocolVersion": version,
            "serverInfo": self.server_info,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"listChanged": True, "subscribe": False},
            },
        }

    async def _ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    async def _tools_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"tools": get_tools()}

    async def _tools_call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        tool_name = params.get("name")
        if tool_name != POP_UI_TOOL_NAME:
            raise JsonRpcError(INVALID_PARAMS, f"Unknown tool: {tool_name}")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise JsonRpcError(INVALID_PARAMS, "arguments must be an object")
        result = await self.dispatcher.dispatch(arguments)
        return result.to_dict()

    async def _resources_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.lister.list_resources()

    async def _resources_templates_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.lister.list_templates()

    async def _resources_read(self, params: Dict[str, Any]) -> Dict[str, Any]:
        uri = params.get("uri")
        if not isinstance(uri, str) or not uri:
            raise JsonRpcError(INVALID_PARAMS, "uri is required")
        return await self.lister.read(uri)
