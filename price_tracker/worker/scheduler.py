"""Shared APScheduler instance."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from price_tracker.config import settings

logger = logging.getLogger(__name__)


def setup_scheduler() -> AsyncIOScheduler:
    """
    Create the scheduler every tracking and cron job is registered on.

    Returns:
        Configured (not yet started) AsyncIOScheduler
    """
    return AsyncIOScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": settings.misfire_grace_seconds,
        },
    )


scheduler = setup_scheduler()


def start_scheduler() -> None:
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
