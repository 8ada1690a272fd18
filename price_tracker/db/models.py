"""SQLAlchemy database models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class JobType(str, Enum):
    PRICE_CHECK = "price_check"
    CLEANUP = "cleanup"
    REPORT = "report"
    CUSTOM = "custom"


class JobStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class TrackedItem(Base):
    """Product page whose price is checked on a schedule.

    Prices are integers in minor units (grosze). price_change_percent is
    basis points: -1050 means a 10.50% drop.
    """

    __tablename__ = "tracked_items"
    __table_args__ = (
        CheckConstraint(
            "check_interval_minutes BETWEEN 1 AND 1440",
            name="ck_tracked_items_interval",
        ),
        CheckConstraint(
            "price_alert_threshold BETWEEN 0 AND 100",
            name="ck_tracked_items_threshold",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    url: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    product_code: Mapped[Optional[str]] = mapped_column(
        String(32), nullable=True, unique=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    current_price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    previous_price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    price_change_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    check_interval_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    price_alert_threshold: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    price_history: Mapped[list["PriceHistory"]] = relationship(
        "PriceHistory", back_populates="item", passive_deletes=True
    )


class PriceHistory(Base):
    """One observed price per successful scrape."""

    __tablename__ = "price_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(
        ForeignKey("tracked_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    item: Mapped["TrackedItem"] = relationship("TrackedItem", back_populates="price_history")


class ScheduledJob(Base):
    """Cron-scheduled background job."""

    __tablename__ = "scheduled_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    job_type: Mapped[str] = mapped_column(String(32), nullable=False)
    cron_expression: Mapped[str] = mapped_column(String(128), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    next_execution_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    executions: Mapped[list["JobExecution"]] = relationship(
        "JobExecution", back_populates="job", passive_deletes=True
    )


class JobExecution(Base):
    """Record of a single job run."""

    __tablename__ = "job_executions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("scheduled_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(16), default=JobStatus.RUNNING.value, nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    logs: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    job: Mapped["ScheduledJob"] = relationship("ScheduledJob", back_populates="executions")
