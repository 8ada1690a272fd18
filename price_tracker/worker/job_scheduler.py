"""Cron-scheduled jobs with execution bookkeeping."""

import logging
import threading
import time
import traceback
from contextlib import suppress
from datetime import datetime
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from price_tracker.db import repository
from price_tracker.db.models import JobExecution, JobStatus, ScheduledJob
from price_tracker.db.session import AsyncSessionLocal
from price_tracker.errors import InvalidCronError, JobHandlerNotFoundError
from price_tracker.logging_config import get_logger
from price_tracker.metrics import job_execution_duration_seconds, job_executions_total
from price_tracker.worker.cron import parse_cron
from price_tracker.worker.job_handlers import JOB_HANDLERS, JobContext, JobHandler
from price_tracker.worker.scheduler import scheduler as shared_scheduler

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Keeps one live timer per active scheduled job and records every run.

    Jobs with an invalid cron expression or is_active=False never hold a
    timer.
    """

    def __init__(
        self,
        scheduler: Optional[AsyncIOScheduler] = None,
        session_factory=None,
        handlers: Optional[dict[str, JobHandler]] = None,
        tracker=None,
    ):
        self.scheduler = scheduler or shared_scheduler
        self.session_factory = session_factory or AsyncSessionLocal
        self.handlers = dict(JOB_HANDLERS if handlers is None else handlers)
        self.tracker = tracker
        self._jobs: dict[int, object] = {}
        self._registry_lock = threading.Lock()

    @staticmethod
    def _job_id(job_id: int) -> str:
        return f"job-{job_id}"

    def _remove_entry(self, job_id: int) -> bool:
        job = self._jobs.pop(job_id, None)
        if job is None:
            return False
        with suppress(JobLookupError):
            job.remove()
        return True

    def has_handler(self, job_type: str) -> bool:
        return job_type in self.handlers

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def schedule_job(self, job: ScheduledJob) -> bool:
        """
        Install (or replace) the timer for a job.

        Returns:
            True if the job now has a live timer, False if it is inactive or
            its cron expression is invalid
        """
        if not job.is_active:
            self.unschedule_job(job.id)
            logger.info(f"Job {job.id} ({job.name}) is inactive, not scheduling")
            return False

        try:
            trigger = parse_cron(job.cron_expression)
        except InvalidCronError as e:
            logger.error(f"Cannot schedule job {job.id} ({job.name}): {e}")
            self.unschedule_job(job.id)
            return False

        with self._registry_lock:
            self._remove_entry(job.id)
            self._jobs[job.id] = self.scheduler.add_job(
                self.run_scheduled,
                trigger,
                args=[job.id],
                id=self._job_id(job.id),
                name=job.name,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

        logger.info(f"Scheduled job {job.id} ({job.name}) with cron '{job.cron_expression}'")
        return True

    def unschedule_job(self, job_id: int) -> None:
        with self._registry_lock:
            removed = self._remove_entry(job_id)
        if removed:
            logger.info(f"Unscheduled job {job_id}")

    def is_scheduled(self, job_id: int) -> bool:
        with self._registry_lock:
            return job_id in self._jobs

    def next_run_time(self, job_id: int) -> Optional[datetime]:
        with self._registry_lock:
            job = self._jobs.get(job_id)
        return getattr(job, "next_run_time", None) if job is not None else None

    def get_scheduled_jobs(self) -> list[dict]:
        """Snapshot of live timers."""
        with self._registry_lock:
            entries = list(self._jobs.items())
        scheduled = []
        for job_id, job in sorted(entries, key=lambda entry: entry[0]):
            next_run = getattr(job, "next_run_time", None)
            scheduled.append(
                {
                    "job_id": job_id,
                    "is_active": True,
                    "next_run_time": next_run.isoformat() if next_run else None,
                }
            )
        return scheduled

    async def refresh_next_execution(self, job_id: int) -> None:
        """Store the advisory next execution time on the job row."""
        next_run = self.next_run_time(job_id)
        async with self.session_factory() as db:
            await repository.set_next_execution(
                db, job_id, next_run.replace(tzinfo=None) if next_run else None
            )
            await db.commit()

    async def initialize(self) -> int:
        """Schedule every active persisted job. Returns the number scheduled."""
        async with self.session_factory() as db:
            jobs = await repository.list_jobs(db, active_only=True)

        scheduled = 0
        for job in jobs:
            if self.schedule_job(job):
                scheduled += 1
                await self.refresh_next_execution(job.id)
        logger.info(f"Initialized {scheduled} of {len(jobs)} active scheduled jobs")
        return scheduled

    def stop_all(self) -> None:
        with self._registry_lock:
            for job_id in list(self._jobs):
                self._remove_entry(job_id)
        logger.info("Stopped all scheduled jobs")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_scheduled(self, job_id: int) -> None:
        """Timer callback. Never raises."""
        try:
            async with self.session_factory() as db:
                job = await repository.get_job(db, job_id)
            if job is None or not job.is_active:
                logger.warning(f"Scheduled job {job_id} is gone or inactive, skipping run")
                return
            await self.execute_job(job)
            await self.refresh_next_execution(job_id)
        except Exception as e:
            logger.error(f"Scheduled run of job {job_id} failed: {e}", exc_info=True)

    async def execute_job(self, job: ScheduledJob) -> JobExecution:
        """
        Run a job once and record the execution.

        The execution row is created as running and moved exactly once to
        success or failed. Handler errors are captured in the row, not raised.

        Returns:
            The finished JobExecution
        """
        job_id, job_type = job.id, job.job_type
        log = get_logger(__name__, job_id=job_id)

        started_at = datetime.utcnow()
        started = time.monotonic()
        lines = [f"Job execution started at {started_at.isoformat()}"]

        async with self.session_factory() as db:
            execution = await repository.create_execution(db, job_id, started_at, lines[0])
            await db.commit()
            execution_id = execution.id

        ctx = JobContext(
            job_id=job_id,
            execution_id=execution_id,
            session_factory=self.session_factory,
            tracker=self.tracker,
            lines=lines,
        )
        log.info(f"Executing job {job_id} ({job.name}, type {job_type})")

        try:
            handler = self.handlers.get(job_type)
            if handler is None:
                raise JobHandlerNotFoundError(job_type)
            output = await handler(ctx)
        except Exception as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            lines.append(f"Error: {e}\n{traceback.format_exc().rstrip()}")
            status = JobStatus.FAILED
            result = {"success": False, "error": str(e)}
            log.error(f"Job {job_id} failed after {duration_ms}ms: {e}")
        else:
            duration_ms = int((time.monotonic() - started) * 1000)
            lines.append(f"Job completed successfully in {duration_ms}ms")
            status = JobStatus.SUCCESS
            result = {"success": True, "message": "Job completed successfully"}
            if output:
                result["data"] = output
            log.info(f"Job {job_id} completed in {duration_ms}ms")

        completed_at = datetime.utcnow()
        try:
            await self._finish_execution(
                job_id, execution_id, status, completed_at, duration_ms, lines, result
            )
        except Exception as e:
            log.error(f"Could not record result of execution {execution_id}: {e}", exc_info=True)
            status = JobStatus.FAILED
            lines.append(f"Error recording result: {e}")
            try:
                await self._finish_execution(
                    job_id,
                    execution_id,
                    status,
                    completed_at,
                    duration_ms,
                    lines,
                    {"success": False, "error": f"Could not record result: {e}"},
                )
            except Exception as retry_error:
                log.error(f"Execution {execution_id} left running: {retry_error}")

        async with self.session_factory() as db:
            execution = await db.get(JobExecution, execution_id)

        job_executions_total.labels(job_type=job_type, status=status.value).inc()
        job_execution_duration_seconds.labels(job_type=job_type).observe(duration_ms / 1000)
        return execution

    async def _finish_execution(
        self,
        job_id: int,
        execution_id: int,
        status: JobStatus,
        completed_at: datetime,
        duration_ms: int,
        lines: list[str],
        result: dict,
    ) -> None:
        """Move the execution out of running and stamp the job on success."""
        log = get_logger(__name__, job_id=job_id)
        async with self.session_factory() as db:
            finished = await repository.complete_execution(
                db,
                execution_id,
                status=status,
                completed_at=completed_at,
                duration_ms=duration_ms,
                logs="\n".join(lines),
                result=result,
            )
            if not finished:
                log.warning(f"Execution {execution_id} already left the running state")
            if status is JobStatus.SUCCESS:
                await repository.mark_job_executed(db, job_id, completed_at)
            await db.commit()


job_scheduler = JobScheduler()
