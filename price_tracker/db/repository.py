"""Async CRUD helpers over the tracker tables.

Functions flush but never commit; the caller owns the transaction.
"""

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from price_tracker.db.models import (
    JobExecution,
    JobStatus,
    PriceHistory,
    ScheduledJob,
    TrackedItem,
)


# ---------------------------------------------------------------------------
# Tracked items
# ---------------------------------------------------------------------------

async def get_item(db: AsyncSession, item_id: int) -> Optional[TrackedItem]:
    return await db.get(TrackedItem, item_id)


async def get_item_by_url(db: AsyncSession, url: str) -> Optional[TrackedItem]:
    result = await db.execute(select(TrackedItem).where(TrackedItem.url == url))
    return result.scalar_one_or_none()


async def get_item_by_code(db: AsyncSession, product_code: str) -> Optional[TrackedItem]:
    result = await db.execute(
        select(TrackedItem).where(TrackedItem.product_code == product_code)
    )
    return result.scalar_one_or_none()


async def find_duplicate(
    db: AsyncSession, url: str, product_code: Optional[str]
) -> Optional[TrackedItem]:
    """Return an existing item with the same URL or product code."""
    existing = await get_item_by_url(db, url)
    if existing is None and product_code:
        existing = await get_item_by_code(db, product_code)
    return existing


async def list_items(db: AsyncSession) -> Sequence[TrackedItem]:
    result = await db.execute(select(TrackedItem).order_by(TrackedItem.created_at.desc()))
    return result.scalars().all()


async def list_item_ids(db: AsyncSession) -> list[int]:
    result = await db.execute(select(TrackedItem.id).order_by(TrackedItem.id))
    return list(result.scalars().all())


async def create_item(db: AsyncSession, **fields) -> TrackedItem:
    item = TrackedItem(**fields)
    db.add(item)
    await db.flush()
    return item


async def delete_item(db: AsyncSession, item_id: int) -> bool:
    result = await db.execute(delete(TrackedItem).where(TrackedItem.id == item_id))
    return result.rowcount > 0


async def count_items(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(TrackedItem.id)))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Price history
# ---------------------------------------------------------------------------

async def append_price_history(
    db: AsyncSession, item_id: int, price: int, recorded_at: Optional[datetime] = None
) -> PriceHistory:
    entry = PriceHistory(
        item_id=item_id,
        price=price,
        recorded_at=recorded_at or datetime.utcnow(),
    )
    db.add(entry)
    await db.flush()
    return entry


async def get_price_history(
    db: AsyncSession, item_id: int, since: Optional[datetime] = None
) -> Sequence[PriceHistory]:
    query = select(PriceHistory).where(PriceHistory.item_id == item_id)
    if since is not None:
        query = query.where(PriceHistory.recorded_at >= since)
    result = await db.execute(query.order_by(PriceHistory.recorded_at, PriceHistory.id))
    return result.scalars().all()


async def delete_price_history(db: AsyncSession, item_id: int) -> int:
    result = await db.execute(delete(PriceHistory).where(PriceHistory.item_id == item_id))
    return result.rowcount


async def count_price_history(db: AsyncSession, since: Optional[datetime] = None) -> int:
    query = select(func.count(PriceHistory.id))
    if since is not None:
        query = query.where(PriceHistory.recorded_at >= since)
    result = await db.execute(query)
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Scheduled jobs
# ---------------------------------------------------------------------------

async def get_job(db: AsyncSession, job_id: int) -> Optional[ScheduledJob]:
    return await db.get(ScheduledJob, job_id)


async def list_jobs(db: AsyncSession, active_only: bool = False) -> Sequence[ScheduledJob]:
    query = select(ScheduledJob)
    if active_only:
        query = query.where(ScheduledJob.is_active.is_(True))
    result = await db.execute(query.order_by(ScheduledJob.created_at.desc()))
    return result.scalars().all()


async def create_job(db: AsyncSession, **fields) -> ScheduledJob:
    job = ScheduledJob(**fields)
    db.add(job)
    await db.flush()
    return job


async def delete_job(db: AsyncSession, job_id: int) -> bool:
    await db.execute(delete(JobExecution).where(JobExecution.job_id == job_id))
    result = await db.execute(delete(ScheduledJob).where(ScheduledJob.id == job_id))
    return result.rowcount > 0


async def mark_job_executed(db: AsyncSession, job_id: int, executed_at: datetime) -> None:
    await db.execute(
        update(ScheduledJob)
        .where(ScheduledJob.id == job_id)
        .values(last_executed_at=executed_at)
    )


async def set_next_execution(
    db: AsyncSession, job_id: int, next_execution_at: Optional[datetime]
) -> None:
    await db.execute(
        update(ScheduledJob)
        .where(ScheduledJob.id == job_id)
        .values(next_execution_at=next_execution_at)
    )


# ---------------------------------------------------------------------------
# Job executions
# ---------------------------------------------------------------------------

async def create_execution(
    db: AsyncSession, job_id: int, started_at: datetime, logs: str
) -> JobExecution:
    execution = JobExecution(
        job_id=job_id,
        status=JobStatus.RUNNING.value,
        started_at=started_at,
        logs=logs,
    )
    db.add(execution)
    await db.flush()
    return execution


async def complete_execution(
    db: AsyncSession,
    execution_id: int,
    status: JobStatus,
    completed_at: datetime,
    duration_ms: int,
    logs: str,
    result: dict,
) -> bool:
    """Move a running execution to a terminal status.

    Returns False when the row already left the running state.
    """
    outcome = await db.execute(
        update(JobExecution)
        .where(
            JobExecution.id == execution_id,
            JobExecution.status == JobStatus.RUNNING.value,
        )
        .values(
            status=status.value,
            completed_at=completed_at,
            duration_ms=duration_ms,
            logs=logs,
            result=result,
        )
        .execution_options(synchronize_session="fetch")
    )
    return outcome.rowcount == 1


async def get_executions(
    db: AsyncSession, job_id: int, limit: int = 50
) -> Sequence[JobExecution]:
    result = await db.execute(
        select(JobExecution)
        .where(JobExecution.job_id == job_id)
        .order_by(JobExecution.started_at.desc(), JobExecution.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def delete_executions_before(db: AsyncSession, cutoff: datetime) -> int:
    result = await db.execute(
        delete(JobExecution).where(
            JobExecution.started_at < cutoff,
            JobExecution.status != JobStatus.RUNNING.value,
        )
    )
    return result.rowcount


async def count_executions(db: AsyncSession, since: Optional[datetime] = None) -> dict[str, int]:
    query = select(JobExecution.status, func.count(JobExecution.id)).group_by(
        JobExecution.status
    )
    if since is not None:
        query = query.where(JobExecution.started_at >= since)
    result = await db.execute(query)
    return {status: count for status, count in result.all()}
