"""Handlers for scheduled job types."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from price_tracker.config import settings
from price_tracker.db import repository
from price_tracker.db.models import JobType

logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    """What a handler gets to work with during one execution."""

    job_id: int
    execution_id: int
    session_factory: Any
    tracker: Optional[Any] = None
    lines: list[str] = field(default_factory=list)

    def log(self, message: str) -> None:
        """Append a line to the execution log."""
        self.lines.append(message)
        logger.info(f"[job {self.job_id}] {message}")


JobHandler = Callable[[JobContext], Awaitable[Optional[dict]]]


async def run_price_check(ctx: JobContext) -> dict:
    """Check every tracked item once."""
    tracker = ctx.tracker
    if tracker is None:
        from price_tracker.worker.tracker import tracking_scheduler
        tracker = tracking_scheduler

    ctx.log("Checking prices for all tracked items")
    summary = await tracker.check_all_items()
    ctx.log(
        f"Checked {summary['checked']} of {summary['total']} items "
        f"({summary['failed']} failed)"
    )
    return summary


async def run_cleanup(ctx: JobContext) -> dict:
    """Delete finished job executions older than the retention window."""
    cutoff = datetime.utcnow() - timedelta(days=settings.job_execution_retention_days)
    async with ctx.session_factory() as db:
        deleted = await repository.delete_executions_before(db, cutoff)
        await db.commit()
    ctx.log(f"Deleted {deleted} job executions older than {cutoff.isoformat()}")
    return {"deleted_executions": deleted}


async def run_report(ctx: JobContext) -> dict:
    """Summarize tracking activity over the last day."""
    since = datetime.utcnow() - timedelta(days=1)
    async with ctx.session_factory() as db:
        items = await repository.count_items(db)
        observations = await repository.count_price_history(db, since=since)
        executions = await repository.count_executions(db, since=since)

    report = {
        "tracked_items": items,
        "price_observations_24h": observations,
        "job_executions_24h": executions,
    }
    ctx.log(
        f"Report: {items} tracked items, {observations} price observations "
        f"and {sum(executions.values())} job executions in the last 24h"
    )
    return report


async def run_custom(ctx: JobContext) -> None:
    ctx.log("Custom job executed")


JOB_HANDLERS: dict[str, JobHandler] = {
    JobType.PRICE_CHECK.value: run_price_check,
    JobType.CLEANUP.value: run_cleanup,
    JobType.REPORT.value: run_report,
    JobType.CUSTOM.value: run_custom,
}
