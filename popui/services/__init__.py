"""Service layer exports."""

from .render_bridge import HttpRenderBridge, RenderBridge
from .session_registry import ConnectionRegistry, Session, resolve_session_candidate
from .surface_store import SurfaceStore, validate_surface_name

__all__ = [
    "ConnectionRegistry",
    "HttpRenderBridge",
    "RenderBridge",
    "Session",
    "SurfaceStore",
    "resolve_session_candidate",
    "validate_surface_name",
]
