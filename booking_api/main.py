"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from booking_api.api.v1.router import api_router
from booking_api.config import settings
from booking_api.core.clock import utc_now
from booking_api.database import AsyncSessionLocal, check_database_connection, engine
from booking_api.middleware.error_handler import register_exception_handlers
from booking_api.middleware.logging import LoggingMiddleware, configure_logging
from booking_api.scheduler.jobs import JobContext
from booking_api.scheduler.runner import AppointmentScheduler
from booking_api.services.notification_service import EmailNotifier, NotificationDispatcher

# Configure logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Checks the database, starts the job scheduler when enabled, and on
    shutdown stops it and waits for queued notifications.
    """
    logger.info("application_startup", environment=settings.environment)

    if await check_database_connection():
        logger.info("database_connected")
    else:
        logger.error("database_connection_failed")

    scheduler: AppointmentScheduler = app.state.scheduler
    if settings.scheduler_enabled:
        scheduler.start()
    else:
        logger.info("scheduler_disabled")

    yield

    logger.info("application_shutdown")

    await scheduler.stop()
    await app.state.dispatcher.drain()
    logger.info("pending_notifications_drained")

    await engine.dispose()
    logger.info("database_connections_closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Appointment booking API: slot availability, bookings and reminders",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Shared collaborators, replaced in tests through dependency overrides
app.state.clock = utc_now
app.state.notifier = EmailNotifier(settings, utc_now)
app.state.dispatcher = NotificationDispatcher(AsyncSessionLocal, settings, utc_now)
app.state.scheduler = AppointmentScheduler(
    JobContext(
        session_factory=AsyncSessionLocal,
        notifier=app.state.notifier,
        settings=settings,
        clock=utc_now,
    )
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

register_exception_handlers(app)

# Include API router
app.include_router(api_router, prefix=settings.api_v1_prefix)

# Setup Prometheus instrumentation
Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Service name and version."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "booking_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
