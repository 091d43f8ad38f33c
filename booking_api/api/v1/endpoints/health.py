"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from booking_api.config import settings
from booking_api.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health check including dependencies."""

    database: str
    scheduler: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Report that the process is up."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check(request: Request) -> DetailedHealthResponse:
    """
    Health including the database and the background scheduler.

    The scheduler reports ``disabled`` when ``SCHEDULER_ENABLED`` is off.
    """
    db_healthy = await check_database_connection()

    scheduler = getattr(request.app.state, "scheduler", None)
    if not settings.scheduler_enabled:
        scheduler_state = "disabled"
    elif scheduler is not None and scheduler.is_running:
        scheduler_state = "running"
    else:
        scheduler_state = "stopped"

    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        scheduler=scheduler_state,
    )


@router.get("/ping", status_code=status.HTTP_200_OK, summary="Simple ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
