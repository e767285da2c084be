import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

router = APIRouter()

logger = logging.getLogger("popui.api")


@router.get(
    "/health",
    tags=["Monitoring"],
    summary="Health check endpoint",
    include_in_schema=False,
)
@router.get(
    "/healthz",
    tags=["Monitoring"],
    summary="Kubernetes style health check endpoint",
    include_in_schema=False,
)
async def health_check(request: Request):
    registry = request.app.state.registry
    logger.debug("Health probe received")
    return JSONResponse(
        content={"ok": True, "status": "ok", "sessions": len(registry)},
        status_code=status.HTTP_200_OK,
    )
