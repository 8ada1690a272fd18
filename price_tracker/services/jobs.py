"""Scheduled job management."""

import logging
from typing import Optional, Sequence

from price_tracker.config import settings
from price_tracker.db import repository
from price_tracker.db.models import JobExecution, JobType, ScheduledJob
from price_tracker.db.session import AsyncSessionLocal
from price_tracker.errors import NotFoundError, ValidationError
from price_tracker.worker.cron import parse_cron
from price_tracker.worker.job_scheduler import JobScheduler, job_scheduler

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "job_type", "cron_expression", "is_active")


class JobService:
    """CRUD for scheduled jobs that keeps the live timers in sync."""

    def __init__(self, session_factory=None, scheduler: Optional[JobScheduler] = None):
        self.session_factory = session_factory or AsyncSessionLocal
        self.scheduler = scheduler or job_scheduler

    def _validate_type(self, job_type: str) -> None:
        known = {t.value for t in JobType}
        if job_type not in known or not self.scheduler.has_handler(job_type):
            raise ValidationError(
                f"Unknown job type: {job_type}. Expected one of: {', '.join(sorted(known))}"
            )

    async def create_job(
        self,
        name: str,
        job_type: str,
        cron_expression: str,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> ScheduledJob:
        """
        Persist a job and schedule it when active.

        Raises:
            ValidationError: Unknown job type or invalid cron expression
        """
        if not name or not name.strip():
            raise ValidationError("Job name is required")
        self._validate_type(job_type)
        parse_cron(cron_expression)

        async with self.session_factory() as db:
            job = await repository.create_job(
                db,
                name=name.strip(),
                description=description,
                job_type=job_type,
                cron_expression=cron_expression.strip(),
                is_active=is_active,
            )
            await db.commit()

        if self.scheduler.schedule_job(job):
            await self.scheduler.refresh_next_execution(job.id)
        return await self.get_job(job.id)

    async def update_job(self, job_id: int, **changes) -> ScheduledJob:
        """
        Apply a partial update.

        Deactivating removes the timer. Activating or changing the cron
        expression reschedules.
        """
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
        if "job_type" in changes:
            self._validate_type(changes["job_type"])
        if "cron_expression" in changes:
            changes["cron_expression"] = changes["cron_expression"].strip()
            parse_cron(changes["cron_expression"])

        async with self.session_factory() as db:
            job = await repository.get_job(db, job_id)
            if job is None:
                raise NotFoundError("Job not found")
            for key, value in changes.items():
                setattr(job, key, value)
            await db.commit()

        if changes.get("is_active") is False:
            self.scheduler.unschedule_job(job_id)
            await self.scheduler.refresh_next_execution(job_id)
        elif "is_active" in changes or "cron_expression" in changes:
            self.scheduler.schedule_job(job)
            await self.scheduler.refresh_next_execution(job_id)
        return await self.get_job(job_id)

    async def delete_job(self, job_id: int) -> None:
        async with self.session_factory() as db:
            if await repository.get_job(db, job_id) is None:
                raise NotFoundError("Job not found")

        self.scheduler.unschedule_job(job_id)
        async with self.session_factory() as db:
            await repository.delete_job(db, job_id)
            await db.commit()
        logger.info(f"Deleted job {job_id}")

    async def run_now(self, job_id: int) -> JobExecution:
        job = await self.get_job(job_id)
        return await self.scheduler.execute_job(job)

    async def get_job(self, job_id: int) -> ScheduledJob:
        async with self.session_factory() as db:
            job = await repository.get_job(db, job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    async def list_jobs(self) -> Sequence[ScheduledJob]:
        async with self.session_factory() as db:
            return await repository.list_jobs(db)

    async def get_executions(self, job_id: int, limit: Optional[int] = None) -> Sequence[JobExecution]:
        await self.get_job(job_id)
        async with self.session_factory() as db:
            return await repository.get_executions(
                db, job_id, limit=limit or settings.job_execution_history_limit
            )


job_service = JobService()
