"""
PopUI Routes

Route Modules:
- sse: MCP SSE transport (GET /sse, POST /messages)
- uploads: plain file uploads into the shared surface directory
- health: liveness probe
"""

from . import health, sse, uploads

__all__ = ["health", "sse", "uploads"]
