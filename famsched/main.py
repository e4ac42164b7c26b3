"""famsched - family activity reminders over Web Push."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from famsched.core.config import settings
from famsched.core.db_client import close_connection, init_db
from famsched.core.logging import configure_logfire, instrument_fastapi
from famsched.core.scheduler import SCHEDULED_JOBS, start_scheduler, stop_scheduler
from famsched.core.scheduler_tracker import job_tracker
from famsched.interface.notifications_router import router as notifications_router
from famsched.interface.push_router import router as push_router
from famsched.interface.push_sender import get_push_transport


logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """Report missing optional credentials.

    Push and trigger authentication are optional: without VAPID keys the
    service runs but every send reports missing configuration, and without a
    cron secret the trigger endpoints are open.
    """
    logger.info("startup_validation_begin")

    try:
        settings.require_credential("vapid_public_key", "Web Push (VAPID public key)")
        settings.require_credential("vapid_private_key", "Web Push (VAPID private key)")
        logger.info("startup_validation", extra={"stage": "vapid", "status": "ok"})
    except ValueError as e:
        logger.warning("startup_validation", extra={"stage": "vapid", "status": "missing", "error": str(e)})

    if not settings.cron_secret:
        logger.warning("startup_validation", extra={"stage": "cron_secret", "status": "missing"})

    logger.info("startup_validation_complete", extra={"push_enabled": get_push_transport().is_configured})


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()
    validate_startup_configuration()

    await init_db()
    logger.info("Database initialized")

    if settings.reminder_scheduler_enabled:
        start_scheduler()
    yield
    # Shutdown
    stop_scheduler()
    await close_connection()


app = FastAPI(
    title="famsched",
    description="Family activity reminders over Web Push",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(push_router)
app.include_router(notifications_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    job_statuses = {}
    for job_name in SCHEDULED_JOBS:
        job_statuses[job_name] = await job_tracker.get_job_status(job_name)

    dlq = job_tracker.get_dead_letter_queue()

    has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())

    overall_status = "degraded" if has_failures else "healthy"
    if len(dlq) > 0:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "scheduler_enabled": settings.reminder_scheduler_enabled,
            "jobs": job_statuses,
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )
