"""Background worker that runs due scheduled jobs."""

import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from ..core.database import async_session_factory
from ..core.dependencies import (
    build_booking_engine,
    build_booking_service,
    get_payment_gateway,
    get_sms_sender,
    get_transfer_gateway,
)
from ..core.observability import MetricsCollector
from ..models.scheduled_job import JobKind, ScheduledJob
from ..services.idempotency_service import IdempotencyService
from ..services.notification_service import NotificationType
from ..services.ports import OffSessionChargeInvoker, TransferInvoker
from ..services.scheduler_service import JobScheduler
from ..services.transfer_service import TransferService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class JobFailed(Exception):
    """A job ran but did not finish its work; it is retried on a later poll."""


class JobWorker(BaseWorker):
    """
    Background worker for the ``scheduled_jobs`` queue.

    Each due job runs in its own session so a failing job cannot roll back
    the work of the others. Charge declines are stored on the installment
    and the job is done; exceptions and incomplete transfer runs count as
    a failed attempt.
    """

    def __init__(
        self,
        interval_seconds: int = 60,
        session_factory: async_sessionmaker = async_session_factory,
        charger_factory: Callable[[], OffSessionChargeInvoker] = get_payment_gateway,
        transfer_factory: Callable[[], TransferInvoker] = get_transfer_gateway,
        sms_factory: Callable = get_sms_sender,
        batch_size: int = 100,
    ):
        super().__init__(name="Jobs", interval_seconds=interval_seconds)
        self.session_factory = session_factory
        self.charger_factory = charger_factory
        self.transfer_factory = transfer_factory
        self.sms_factory = sms_factory
        self.batch_size = batch_size

    async def process(self) -> None:
        async with self.session_factory() as db:
            jobs = await JobScheduler(db).due_jobs(limit=self.batch_size)
            job_ids = [job.id for job in jobs]

        for job_id in job_ids:
            await self.run_job(job_id)

        async with self.session_factory() as db:
            MetricsCollector.set_pending_jobs(await JobScheduler(db).pending_count())
            await IdempotencyService(db).purge_expired()

        if job_ids:
            logger.info(
                f"Processed {len(job_ids)} scheduled jobs",
                extra={"job_count": len(job_ids), "worker": self.name}
            )

    async def run_job(self, job_id: int) -> Optional[ScheduledJob]:
        """Run one job and record the attempt; returns the job afterwards."""
        async with self.session_factory() as db:
            scheduler = JobScheduler(db)
            job = await db.get(ScheduledJob, job_id)
            if job is None:
                return None

            kind = JobKind(job.kind)
            booking_id = job.booking_id
            payload = dict(job.payload or {})

            try:
                await self._dispatch(db, kind, booking_id, payload)
            except Exception as e:
                await db.rollback()
                job = await db.get(ScheduledJob, job_id)
                await scheduler.mark_failed(job, str(e))
                if not isinstance(e, JobFailed):
                    logger.error(
                        "Scheduled job raised",
                        exc_info=True,
                        extra={"job_id": job_id, "kind": kind.value, "booking_id": booking_id}
                    )
                return job

            await scheduler.mark_done(job)
            return job

    async def _dispatch(self, db: AsyncSession, kind: JobKind, booking_id: Optional[int], payload: dict) -> None:
        if kind == JobKind.CHARGE_INSTALLMENT:
            engine = build_booking_engine(db, self.charger_factory())
            service = build_booking_service(db, engine, self.sms_factory())
            result = await service.charge_installment(booking_id, int(payload["installment_number"]))
            logger.info(
                "Scheduled installment charge finished",
                extra={
                    "booking_id": booking_id,
                    "installment_number": result.installment_number,
                    "outcome": result.outcome.value,
                }
            )

        elif kind == JobKind.SEND_NOTIFICATION:
            engine = build_booking_engine(db, self.charger_factory())
            service = build_booking_service(db, engine, self.sms_factory())
            await service.notifications.send(booking_id, NotificationType(payload["notification_type"]))

        elif kind == JobKind.PROCESS_TRANSFERS:
            summary = await TransferService(db, self.transfer_factory(), settings.currency).process_transfers(booking_id)
            if not summary.complete:
                raise JobFailed(
                    "; ".join(f"cohost {cohost_id}: {error}" for cohost_id, error in summary.errors.items())
                )
