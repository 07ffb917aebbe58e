# app/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.core.config import get_settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(
        ...,
        description="Overall health status of the service.",
        examples=["ok"],
    )
    app_name: str = Field(
        ...,
        description="Human-friendly name of the running application.",
        examples=["Class Schedule Sync"],
    )
    environment: str = Field(
        ...,
        description="Current deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    zoom_mode: str = Field(
        ...,
        description="How meetings are created: `live`, `simulated` or `unconfigured`.",
        examples=["live"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
        examples=["2025-01-01T10:30:00Z"],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for the Class Schedule Sync service",
    description=(
        "Lightweight endpoint to verify that the backend is up and responding.\n\n"
        "Typical use-cases:\n"
        "- Kubernetes / Docker / VM health probes\n"
        "- Uptime monitoring & alerting\n"
        "- Quick smoke-test after deployments\n"
    ),
    responses={
        200: {
            "description": "Service is healthy and responding as expected.",
            "content": {
                "application/json": {
                    "example": {
                        "status": "ok",
                        "app_name": "Class Schedule Sync",
                        "environment": "local",
                        "zoom_mode": "live",
                        "timestamp_utc": "2025-01-01T10:30:00Z",
                    }
                }
            },
        }
    },
)
async def health_check() -> HealthResponse:
    """
    Returns the current health status of the service.

    Does **not** call the database or Zoom, so it stays reliable even when
    downstream components are degraded.
    """
    settings = get_settings()
    if settings.ZOOM_SIMULATION_MODE:
        zoom_mode = "simulated"
    elif settings.is_zoom_configured:
        zoom_mode = "live"
    else:
        zoom_mode = "unconfigured"

    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        zoom_mode=zoom_mode,
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
