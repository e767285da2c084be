"""
MCP (Model Context Protocol) layer for PopUI.

- dispatcher: mode state machine behind the ``pop-ui`` tool
- resources: ``ui://list`` and ``ui://surface/{name}`` resources
- protocol: JSON-RPC method table bound to SSE sessions
- tools: tool definitions for ``tools/list``

JSON-RPC Methods:
- initialize, ping
- tools/list, tools/call
- resources/list, resources/templates/list, resources/read
"""

from .dispatcher import SurfaceMode, ToolDispatcher, ToolResult
from .protocol import McpProtocol, list_changed_notification
from .resources import ResourceLister
from .tools import POP_UI_TOOL_NAME, POP_UI_TOOLS

__all__ = [
    "McpProtocol",
    "POP_UI_TOOLS",
    "POP_UI_TOOL_NAME",
    "ResourceLister",
    "SurfaceMode",
    "ToolDispatcher",
    "ToolResult",
    "list_changed_notification",
]
