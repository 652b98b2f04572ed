"""APScheduler job definitions and scheduler management.

Initializes a BackgroundScheduler with the periodic flush of the candidate
action log and provides start/shutdown/status helpers for the FastAPI
lifespan.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from candilib.core.config import settings
from candilib.services.action_log import get_accumulator

logger = logging.getLogger(__name__)

# Module-level scheduler instance (singleton)
scheduler = BackgroundScheduler()


def _flush_action_log_job() -> None:
    """Wrapper that APScheduler calls on each interval tick."""
    accumulator = get_accumulator()
    if accumulator is not None:
        accumulator.flush()


def start_scheduler() -> None:
    """Configure and start the background scheduler."""
    scheduler.add_job(
        _flush_action_log_job,
        IntervalTrigger(seconds=settings.ACTION_LOG_FLUSH_SECONDS),
        id="flush_action_log",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "scheduler_started",
        extra={"flush_interval_seconds": settings.ACTION_LOG_FLUSH_SECONDS},
    )


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")


def is_scheduler_running() -> bool:
    """Check if the scheduler is currently running."""
    return scheduler.running
