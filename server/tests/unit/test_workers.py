"""Unit tests for the background job and calendar sync workers."""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest
from conftest import FakeGateway, make_booking_request

from str_booking.models.scheduled_job import JobKind, JobStatus, ScheduledJob
from str_booking.schemas.cohost import AddCohostRequest
from str_booking.schemas.payment_plan import InstallmentStatus, PaymentPlan
from str_booking.services.cohost_service import CohostService
from str_booking.services.repositories import SqlInstallmentStore
from str_booking.services.scheduler_service import MAX_ATTEMPTS, JobScheduler
from str_booking.workers.base import BaseWorker
from str_booking.workers.calendar_sync_worker import CalendarSyncWorker
from str_booking.workers.job_worker import JobWorker


class ExplodingCharger:
    async def charge_off_session(self, **kwargs):
        raise RuntimeError("gateway exploded")


def _worker(session_factory, charger=None, transfers=None) -> JobWorker:
    return JobWorker(
        interval_seconds=1,
        session_factory=session_factory,
        charger_factory=lambda: charger or FakeGateway(),
        transfer_factory=lambda: transfers or FakeGateway(),
        sms_factory=lambda: None,
    )


async def _two_payment_booking(booking_service, property_id):
    """A two-payment booking far enough out that only its confirmation is due now."""
    today = date.today()
    request = make_booking_request(property_id, today + timedelta(days=200), 7, payment_plan=PaymentPlan.TWO_PAYMENT)
    return await booking_service.create_booking(request, "key-worker", today=today)


async def _job_id(test_session, booking_id: int, kind: JobKind) -> int:
    jobs = await JobScheduler(test_session).jobs_for_booking(booking_id)
    return next(job.id for job in jobs if job.kind == kind)


async def _reload_job(session_factory, job_id: int) -> ScheduledJob:
    async with session_factory() as db:
        return await db.get(ScheduledJob, job_id)


@pytest.mark.asyncio
async def test_process_runs_only_due_jobs(session_factory, test_session, booking_service, sample_property):
    booking = await _two_payment_booking(booking_service, sample_property.id)

    worker = _worker(session_factory)
    await worker.run_once()

    async with session_factory() as db:
        jobs = await JobScheduler(db).jobs_for_booking(booking.id)
        done = [job for job in jobs if job.status == JobStatus.DONE]
        pending = [job for job in jobs if job.status == JobStatus.PENDING]

    assert [job.payload["notification_type"] for job in done] == ["booking_confirmation"]
    assert {job.kind for job in pending} == {
        JobKind.CHARGE_INSTALLMENT.value,
        JobKind.SEND_NOTIFICATION.value,
        JobKind.PROCESS_TRANSFERS.value,
    }
    assert worker.iterations == 1
    assert worker.last_run_at is not None


@pytest.mark.asyncio
async def test_charge_job_charges_installment(session_factory, test_session, booking_service, sample_property):
    booking = await _two_payment_booking(booking_service, sample_property.id)
    job_id = await _job_id(test_session, booking.id, JobKind.CHARGE_INSTALLMENT)
    gateway = FakeGateway()

    job = await _worker(session_factory, charger=gateway).run_job(job_id)

    assert job.status == JobStatus.DONE
    assert job.attempts == 1
    assert gateway.charges[0]["idempotency_key"] == f"installment-{booking.id}-2"

    assert (await _reload_job(session_factory, job_id)).status == JobStatus.DONE
    async with session_factory() as db:
        installment = await SqlInstallmentStore(db).get_installment(booking.id, 2)
    assert installment.status == InstallmentStatus.PAID
    assert installment.transaction_id == "pi_1"


@pytest.mark.asyncio
async def test_declined_charge_is_not_retried(session_factory, test_session, booking_service, sample_property):
    booking = await _two_payment_booking(booking_service, sample_property.id)
    job_id = await _job_id(test_session, booking.id, JobKind.CHARGE_INSTALLMENT)

    job = await _worker(session_factory, charger=FakeGateway(fail_with="Your card was declined.")).run_job(job_id)

    assert job.status == JobStatus.DONE
    assert job.last_error is None

    async with session_factory() as db:
        installment = await SqlInstallmentStore(db).get_installment(booking.id, 2)
    assert installment.status == InstallmentStatus.FAILED
    assert installment.failure_message == "Your card was declined."


@pytest.mark.asyncio
async def test_raising_job_fails_after_max_attempts(session_factory, test_session, booking_service, sample_property):
    booking = await _two_payment_booking(booking_service, sample_property.id)
    job_id = await _job_id(test_session, booking.id, JobKind.CHARGE_INSTALLMENT)
    worker = _worker(session_factory, charger=ExplodingCharger())

    for attempt in range(1, MAX_ATTEMPTS):
        job = await worker.run_job(job_id)
        assert job.status == JobStatus.PENDING
        assert job.attempts == attempt
        assert job.last_error == "gateway exploded"

    job = await worker.run_job(job_id)

    assert job.status == JobStatus.FAILED
    assert (await _reload_job(session_factory, job_id)).attempts == MAX_ATTEMPTS


@pytest.mark.asyncio
async def test_incomplete_transfer_run_is_a_failed_attempt(session_factory, test_session, booking_service, sample_property):
    await CohostService(test_session).add_cohost(AddCohostRequest(
        property_id=sample_property.id, split_value=Decimal("0.25"), account_ref="acct_cleaner"
    ))
    booking = await _two_payment_booking(booking_service, sample_property.id)
    job_id = await _job_id(test_session, booking.id, JobKind.PROCESS_TRANSFERS)

    failing = await _worker(session_factory, transfers=FakeGateway(fail_with="Account restricted")).run_job(job_id)

    assert failing.status == JobStatus.PENDING
    assert failing.attempts == 1
    assert "Account restricted" in failing.last_error

    transfers = FakeGateway()
    succeeded = await _worker(session_factory, transfers=transfers).run_job(job_id)

    assert succeeded.status == JobStatus.DONE
    assert [t["destination"] for t in transfers.transfers] == ["acct_cleaner"]


@pytest.mark.asyncio
async def test_run_unknown_job(session_factory):
    assert await _worker(session_factory).run_job(999) is None


@pytest.mark.asyncio
async def test_calendar_sync_worker_without_feeds(session_factory):
    worker = CalendarSyncWorker(interval_seconds=1, session_factory=session_factory)

    await worker.run_once()

    assert worker.iterations == 1


@pytest.mark.asyncio
async def test_worker_loop_survives_errors():
    class FlakyWorker(BaseWorker):
        def __init__(self):
            super().__init__(name="Flaky", interval_seconds=0)
            self.calls = 0

        async def process(self):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("first iteration fails")

    worker = FlakyWorker()
    await worker.start()
    for _ in range(50):
        if worker.iterations >= 1:
            break
        await asyncio.sleep(0.01)
    await worker.stop()

    assert worker.calls >= 2
    assert worker.iterations >= 1
    assert not worker.running
