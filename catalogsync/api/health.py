"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from catalogsync.infrastructure.config import settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="catalog-sync",
        version=settings.api_version,
    )


@router.get("/ready", response_model=None)
async def readiness_check(request: Request) -> dict[str, str] | JSONResponse:
    """Check if the sync pipeline is running and ready to serve.

    Returns:
        Readiness status, or 503 while the orchestrator is not running.
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None or not orchestrator.is_running:
        state = orchestrator.state.value if orchestrator is not None else "uninitialised"
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "sync_state": state},
        )
    return {"status": "ready", "sync_state": orchestrator.state.value}
