from contextlib import asynccontextmanager
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, get_settings
from .mcp.dispatcher import ToolDispatcher
from .mcp.protocol import McpProtocol, list_changed_notification
from .mcp.resources import ResourceLister
from .routes.health import router as health_router
from .routes.sse import router as sse_router
from .routes.uploads import router as uploads_router
from .services.render_bridge import HttpRenderBridge, RenderBridge
from .services.session_registry import ConnectionRegistry
from .services.surface_store import SurfaceStore
from .utils.central_logging import setup_central_logging
from .utils.logging_middleware import LoggingMiddleware

logger = logging.getLogger("popui.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: SurfaceStore = app.state.store
    store.ensure_dir()
    logger.info(f"PopUI {__version__} serving surfaces from {store.content_dir} (renderer: {app.state.settings.renderer_url})")

    yield

    registry: ConnectionRegistry = app.state.registry
    for session_id in registry.session_ids():
        registry.deregister(session_id)

    try:
        await store.bridge.aclose()
    except Exception as e:
        logger.warning(f"Failed to close render bridge: {e}")


def create_app(settings: Optional[Settings] = None, bridge: Optional[RenderBridge] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_central_logging(
        log_dir=Path(settings.log_dir) if settings.file_logging_enabled else None,
        console_level=settings.log_level.upper(),
    )

    app = FastAPI(
        title="PopUI",
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    # Components are owned by the app instance, not by module globals
    registry = ConnectionRegistry(fallback_enabled=settings.session_fallback_enabled)
    bridge = bridge or HttpRenderBridge(
        str(settings.renderer_url),
        timeout=settings.renderer_timeout,
        retries=settings.renderer_retries,
    )
    store = SurfaceStore(
        Path(settings.uploads_dir),
        bridge,
        suffix=settings.surface_suffix,
        bridge_timeout=settings.renderer_timeout,
    )

    async def notify_list_changed() -> None:
        await registry.broadcast(list_changed_notification())

    dispatcher = ToolDispatcher(store, on_list_changed=notify_list_changed)
    protocol = McpProtocol(dispatcher, ResourceLister(store), server_name=settings.server_name)

    app.state.settings = settings
    app.state.registry = registry
    app.state.store = store
    app.state.protocol = protocol

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error("Request validation error on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.errors()},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.detail,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Global Unhandled Exception on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal Server Error",
                "error": {
                    "code": "internal_error",
                    "message": "An unexpected error occurred."
                }
            }
        )

    allowed_origins = [origin.strip() for origin in settings.cors_allowed_origins.split(",") if origin.strip()]
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(LoggingMiddleware)

    app.include_router(sse_router, tags=["MCP"])
    app.include_router(uploads_router, tags=["Uploads"])
    app.include_router(health_router, tags=["Monitoring"])

    return app
