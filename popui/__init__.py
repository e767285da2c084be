"""
PopUI - MCP bridge for named, externally rendered user interfaces.

Hosts connect over SSE (``GET /sse``), post JSON-RPC messages to
``/messages`` and drive surfaces through the ``pop-ui`` tool.
"""

__version__ = "1.0.0"
