"""Scheduled job routes."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from price_tracker.db.models import JobType
from price_tracker.services.jobs import job_service
from price_tracker.worker.job_scheduler import job_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


class JobCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    job_type: JobType
    cron_expression: str = Field(..., description="6 fields: second minute hour day month weekday")
    is_active: bool = True


class JobUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    job_type: Optional[JobType] = None
    cron_expression: Optional[str] = None
    is_active: Optional[bool] = None


class JobResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    job_type: str
    cron_expression: str
    is_active: bool
    last_executed_at: Optional[datetime]
    next_execution_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class ExecutionResponse(BaseModel):
    id: int
    job_id: int
    status: str
    started_at: datetime
    completed_at: Optional[datetime]
    duration_ms: Optional[int]
    logs: Optional[str]
    result: Optional[dict]

    class Config:
        from_attributes = True


@router.get("", response_model=List[JobResponse])
async def list_jobs():
    return await job_service.list_jobs()


@router.get("/scheduled")
async def scheduled_jobs():
    """Jobs that currently hold a live timer."""
    return job_scheduler.get_scheduled_jobs()


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(job: JobCreate):
    return await job_service.create_job(
        name=job.name,
        job_type=job.job_type.value,
        cron_expression=job.cron_expression,
        description=job.description,
        is_active=job.is_active,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: int):
    return await job_service.get_job(job_id)


@router.get("/{job_id}/executions", response_model=List[ExecutionResponse])
async def get_executions(job_id: int):
    """Most recent executions, newest first."""
    return await job_service.get_executions(job_id)


@router.patch("/{job_id}", response_model=JobResponse)
async def update_job(job_id: int, update: JobUpdate):
    changes = update.model_dump(exclude_unset=True)
    if changes.get("job_type") is not None:
        changes["job_type"] = changes["job_type"].value
    return await job_service.update_job(job_id, **changes)


@router.delete("/{job_id}", status_code=204)
async def delete_job(job_id: int):
    await job_service.delete_job(job_id)


@router.post("/{job_id}/execute", response_model=ExecutionResponse)
async def execute_job(job_id: int):
    """Run a job immediately, outside its schedule."""
    return await job_service.run_now(job_id)
