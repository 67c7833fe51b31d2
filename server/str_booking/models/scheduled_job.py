"""Durable scheduled job model definition."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class JobKind(str, Enum):
    """Scheduled job kind enumeration."""
    CHARGE_INSTALLMENT = "charge_installment"
    SEND_NOTIFICATION = "send_notification"
    PROCESS_TRANSFERS = "process_transfers"


class JobStatus(str, Enum):
    """Scheduled job status enumeration."""
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScheduledJob(Base):
    """A deferred side effect the job worker runs once ``run_at`` has passed."""

    __tablename__ = "scheduled_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[JobKind] = mapped_column(String(32), nullable=False)
    run_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[JobStatus] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.PENDING
    )
    booking_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        server_onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_scheduled_jobs_status_run_at", "status", "run_at"),
        CheckConstraint(
            "kind IN ('charge_installment', 'send_notification', 'process_transfers')",
            name="ck_scheduled_job_kind_valid"
        ),
        CheckConstraint(
            "status IN ('pending', 'done', 'failed', 'cancelled')",
            name="ck_scheduled_job_status_valid"
        ),
        CheckConstraint("attempts >= 0", name="ck_scheduled_job_attempts_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScheduledJob(id={self.id}, kind={self.kind}, run_at={self.run_at}, "
            f"status={self.status}, booking_id={self.booking_id})>"
        )
