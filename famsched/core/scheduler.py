"""In-process scheduler for the reminder sweep.

The production trigger is an external cron calling ``/notifications/check``;
this scheduler is an alternative for single-process deployments.
"""

import logging
from functools import partial

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from famsched.core.config import settings
from famsched.core.scheduler_tracker import retry_job_with_backoff
from famsched.services import reminder_service


logger = logging.getLogger(__name__)

REMINDER_SWEEP_JOB = "reminder_sweep"
SCHEDULED_JOBS = [REMINDER_SWEEP_JOB]

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def run_scheduled_sweep() -> None:
    """Run one reminder sweep and log its summary."""
    summary = await reminder_service.run_reminder_sweep()
    logger.info(
        "Scheduled reminder sweep: %d scanned, %d sent, %d errors",
        summary.scanned,
        summary.sent,
        summary.errors,
    )


def start_scheduler() -> None:
    """Start the scheduler and register the reminder sweep.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        partial(retry_job_with_backoff, run_scheduled_sweep, REMINDER_SWEEP_JOB),
        trigger=IntervalTrigger(seconds=settings.reminder_sweep_interval_seconds),
        id=REMINDER_SWEEP_JOB,
        name="Send Due Task Reminders",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduled reminder sweep job: every {settings.reminder_sweep_interval_seconds}s")

    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    if not scheduler.running:
        return
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
