"""Durable job queue backed by the ``scheduled_jobs`` table."""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.scheduled_job import JobKind, JobStatus, ScheduledJob

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class JobScheduler:
    """Service for scheduling deferred work and handing due jobs to the worker."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def schedule(
        self,
        kind: JobKind,
        run_at: datetime,
        payload: Optional[dict[str, Any]] = None,
        booking_id: Optional[int] = None,
    ) -> ScheduledJob:
        """Add a pending job; the caller commits."""
        job = ScheduledJob(
            kind=kind,
            run_at=run_at,
            payload=payload or {},
            status=JobStatus.PENDING,
            booking_id=booking_id,
            attempts=0,
        )
        self.db.add(job)
        await self.db.flush()

        logger.debug(
            "Scheduled job",
            extra={
                "job_id": job.id,
                "kind": kind.value,
                "run_at": run_at.isoformat(),
                "booking_id": booking_id,
            }
        )
        return job

    async def due_jobs(self, now: Optional[datetime] = None, limit: int = 100) -> list[ScheduledJob]:
        """Pending jobs whose ``run_at`` has passed, oldest first."""
        now = now or datetime.utcnow()
        stmt = (
            select(ScheduledJob)
            .where(
                ScheduledJob.status == JobStatus.PENDING,
                ScheduledJob.run_at <= now,
            )
            .order_by(ScheduledJob.run_at, ScheduledJob.id)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def jobs_for_booking(self, booking_id: int) -> list[ScheduledJob]:
        stmt = (
            select(ScheduledJob)
            .where(ScheduledJob.booking_id == booking_id)
            .order_by(ScheduledJob.run_at, ScheduledJob.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def mark_done(self, job: ScheduledJob) -> None:
        job.status = JobStatus.DONE
        job.attempts += 1
        job.last_error = None
        await self.db.commit()

    async def mark_failed(self, job: ScheduledJob, error: str, max_attempts: int = MAX_ATTEMPTS) -> None:
        """
        Record a failed run.

        The job stays pending for the next poll until it has been attempted
        ``max_attempts`` times.
        """
        job.attempts += 1
        job.last_error = error
        if job.attempts >= max_attempts:
            job.status = JobStatus.FAILED
        await self.db.commit()

        logger.warning(
            "Scheduled job failed",
            extra={
                "job_id": job.id,
                "kind": job.kind,
                "attempts": job.attempts,
                "final": job.status == JobStatus.FAILED,
                "error": error,
            }
        )

    async def cancel_for_booking(self, booking_id: int) -> int:
        """Cancel every pending job of a booking; the caller commits."""
        stmt = (
            update(ScheduledJob)
            .where(
                ScheduledJob.booking_id == booking_id,
                ScheduledJob.status == JobStatus.PENDING,
            )
            .values(status=JobStatus.CANCELLED)
        )
        result = await self.db.execute(stmt)
        cancelled = result.rowcount or 0

        logger.info(
            "Cancelled pending jobs",
            extra={"booking_id": booking_id, "cancelled": cancelled}
        )
        return cancelled

    async def pending_count(self) -> int:
        stmt = select(func.count()).select_from(ScheduledJob).where(ScheduledJob.status == JobStatus.PENDING)
        return (await self.db.execute(stmt)).scalar_one()
