"""
Health Router

Public liveness endpoints. Both paths are in the default public route set,
so they bypass authentication.
"""

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from src.api.deps import SettingsDep


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    service: str
    version: str
    environment: str


@router.get("/", response_class=PlainTextResponse, summary="Liveness probe")
async def root() -> str:
    """Plain-text liveness probe."""
    return "OK"


@router.get("/health", response_model=HealthResponse, summary="Service health")
async def health(request: Request, settings: SettingsDep) -> HealthResponse:
    """Report service identity and whether startup completed."""
    initialized = getattr(request.app.state, "initialized", False)
    return HealthResponse(
        status="healthy" if initialized else "starting",
        service=settings.service_name,
        version=request.app.version,
        environment=settings.environment,
    )
