"""Unit tests for the booking lifecycle."""

from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest
from conftest import FakeGateway, make_booking_request
from sqlalchemy import select

from str_booking.core.dependencies import build_booking_engine, build_booking_service
from str_booking.core.exceptions import (
    ConflictError,
    DatesUnavailableError,
    GatewayChargeFailedError,
    NotFoundError,
    PlanNotEligibleError,
    ValidationError,
)
from str_booking.core.money import ZERO
from str_booking.models.booking import Booking
from str_booking.models.scheduled_job import JobKind, JobStatus
from str_booking.schemas.availability import AvailabilityStatus
from str_booking.schemas.booking import BookingStatus, CancelBookingRequest
from str_booking.schemas.common import DateRange
from str_booking.schemas.payment_plan import InstallmentStatus, PaymentPlan
from str_booking.services.scheduler_service import JobScheduler

TODAY = date(2026, 1, 10)
NOW = datetime(2026, 1, 10, 12, 0)
CHECK_IN = date(2026, 6, 1)


async def _create(booking_service, property_id, check_in=CHECK_IN, nights=7, key="key-1", **overrides):
    request = make_booking_request(property_id, check_in, nights, **overrides)
    return await booking_service.create_booking(request, key, today=TODAY, now=NOW)


@pytest.mark.asyncio
async def test_create_booking_snapshots_pricing(booking_service, sample_property):
    booking = await _create(booking_service, sample_property.id)

    assert booking.id is not None
    assert len(booking.code) == 8
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.nightly_subtotal == Decimal("700.00")
    assert booking.los_discount == Decimal("70.00")
    assert booking.cleaning_fee == Decimal("50.00")
    assert booking.security_deposit == Decimal("200.00")
    assert booking.taxes == Decimal("50.40")
    assert booking.total == Decimal("930.40")
    assert booking.nights == 7
    assert booking.created_at is not None

    assert len(booking.installments) == 1
    assert booking.installments[0].status == InstallmentStatus.PAID
    assert booking.installments[0].transaction_id == "pi_1"


@pytest.mark.asyncio
async def test_create_booking_charges_first_installment(booking_service, sample_property, gateway):
    booking = await _create(booking_service, sample_property.id, payment_plan=PaymentPlan.TWO_PAYMENT)

    assert len(gateway.charges) == 1
    charge = gateway.charges[0]
    assert charge["customer_ref"] == "cus_123"
    assert charge["payment_method_ref"] == "pm_123"
    assert charge["amount"] == Decimal("465.20")
    assert charge["idempotency_key"] == "booking-key-1-1"
    assert charge["metadata"]["installment_number"] == 1
    assert charge["metadata"]["property_id"] == sample_property.id

    assert booking.installments[0].transaction_id == "pi_1"
    assert booking.installments[0].attempts == 1
    assert booking.installments[1].status == InstallmentStatus.PENDING
    assert booking.installments[1].transaction_id is None


@pytest.mark.asyncio
async def test_declined_first_charge_stores_nothing(test_session, booking_service, sample_property, engine):
    declining = build_booking_service(
        test_session,
        build_booking_engine(test_session, FakeGateway(fail_with="Your card was declined.")),
    )

    with pytest.raises(GatewayChargeFailedError) as exc_info:
        await _create(declining, sample_property.id)

    assert exc_info.value.status_code == 402
    assert exc_info.value.gateway_message == "Your card was declined."
    assert (await test_session.execute(select(Booking))).scalars().all() == []
    assert await engine.availability.is_available(sample_property.id, DateRange.of(CHECK_IN, CHECK_IN + timedelta(days=7)))

    booking = await _create(booking_service, sample_property.id, key="key-2")
    assert booking.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_deposit_covering_total_queues_no_charges(booking_service, sample_property, gateway, test_session):
    booking = await _create(
        booking_service,
        sample_property.id,
        payment_plan=PaymentPlan.FOUR_PAYMENT,
        deposit_amount=Decimal("930.40"),
    )

    assert [i.amount for i in booking.installments] == [Decimal("930.40"), ZERO, ZERO, ZERO]
    assert all(i.status == InstallmentStatus.PAID for i in booking.installments)
    assert len(gateway.charges) == 1

    jobs = await JobScheduler(test_session).jobs_for_booking(booking.id)
    assert [job for job in jobs if job.kind == JobKind.CHARGE_INSTALLMENT] == []


@pytest.mark.asyncio
async def test_create_booking_marks_nights_booked(booking_service, sample_property, engine):
    booking = await _create(booking_service, sample_property.id)

    days = await engine.availability.store.get_days(sample_property.id, CHECK_IN, CHECK_IN + timedelta(days=7))
    assert len(days) == 7
    assert all(day.status == AvailabilityStatus.BOOKED for day in days)
    assert all(day.booking_id == booking.id for day in days)


@pytest.mark.asyncio
async def test_create_booking_schedules_jobs(booking_service, sample_property, test_session):
    booking = await _create(booking_service, sample_property.id, payment_plan=PaymentPlan.FOUR_PAYMENT)

    jobs = await JobScheduler(test_session).jobs_for_booking(booking.id)
    charges = [job for job in jobs if job.kind == JobKind.CHARGE_INSTALLMENT]
    notifications = [job for job in jobs if job.kind == JobKind.SEND_NOTIFICATION]
    transfers = [job for job in jobs if job.kind == JobKind.PROCESS_TRANSFERS]

    pending = [i for i in booking.installments if i.status == InstallmentStatus.PENDING]
    assert [job.payload["installment_number"] for job in charges] == [i.number for i in pending]
    assert [job.run_at for job in charges] == [datetime.combine(i.due_date, time.min) for i in pending]

    assert notifications[0].run_at == NOW
    assert notifications[0].payload["notification_type"] == "booking_confirmation"
    assert len(notifications) == 5

    assert len(transfers) == 1
    assert transfers[0].run_at == datetime(2026, 6, 2, 15, 0)
    assert all(job.status == JobStatus.PENDING for job in jobs)


@pytest.mark.asyncio
async def test_four_payment_installments_sum_to_total(booking_service, sample_property):
    booking = await _create(booking_service, sample_property.id, payment_plan=PaymentPlan.FOUR_PAYMENT)

    assert len(booking.installments) == 4
    assert sum(i.amount for i in booking.installments) == booking.total
    assert [i.due_date for i in booking.installments[1:]] == [date(2026, 3, 1), date(2026, 4, 1), date(2026, 5, 1)]


@pytest.mark.asyncio
async def test_create_booking_too_many_guests(booking_service, sample_property):
    with pytest.raises(ValidationError) as exc_info:
        await _create(booking_service, sample_property.id, guests=5)

    assert exc_info.value.code == "TOO_MANY_GUESTS"


@pytest.mark.asyncio
async def test_create_booking_unknown_property(booking_service):
    with pytest.raises(NotFoundError):
        await _create(booking_service, 999)


@pytest.mark.asyncio
async def test_create_booking_rejects_ineligible_plan(booking_service, sample_property):
    # 60 days out: two-payment is offered, four-payment is not
    with pytest.raises(PlanNotEligibleError) as exc_info:
        await _create(booking_service, sample_property.id, check_in=date(2026, 3, 11), payment_plan=PaymentPlan.FOUR_PAYMENT)

    assert exc_info.value.problem_details["conflicting_resource"]["eligible_plans"] == ["pay_in_full", "two_payment"]


@pytest.mark.asyncio
async def test_overlapping_booking_is_rejected(booking_service, sample_property):
    await _create(booking_service, sample_property.id)

    with pytest.raises(DatesUnavailableError):
        await _create(booking_service, sample_property.id, check_in=CHECK_IN + timedelta(days=6), nights=3, key="key-2")


@pytest.mark.asyncio
async def test_back_to_back_bookings_are_allowed(booking_service, sample_property):
    first = await _create(booking_service, sample_property.id)
    second = await _create(booking_service, sample_property.id, check_in=first.check_out, nights=2, key="key-2")

    assert second.check_in == first.check_out


@pytest.mark.asyncio
async def test_blocked_dates_reject_booking(booking_service, sample_property, engine):
    await engine.availability.block_dates(sample_property.id, DateRange.of(CHECK_IN, CHECK_IN + timedelta(days=1)), "airbnb")

    with pytest.raises(DatesUnavailableError):
        await _create(booking_service, sample_property.id)


@pytest.mark.asyncio
async def test_cancel_booking_releases_nights_and_jobs(booking_service, sample_property, engine, test_session):
    booking = await _create(booking_service, sample_property.id, payment_plan=PaymentPlan.TWO_PAYMENT)

    cancelled = await booking_service.cancel_booking(CancelBookingRequest(booking_id=booking.id, reason="Change of plans"))

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancellation_reason == "Change of plans"
    assert cancelled.cancelled_at is not None
    assert await engine.check_availability(sample_property.id, CHECK_IN, CHECK_IN + timedelta(days=7))

    jobs = await JobScheduler(test_session).jobs_for_booking(booking.id)
    assert jobs
    assert all(job.status == JobStatus.CANCELLED for job in jobs)

    # The nights can be rebooked
    rebooked = await _create(booking_service, sample_property.id, key="key-2")
    assert rebooked.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_cancel_booking_is_idempotent(booking_service, sample_property):
    booking = await _create(booking_service, sample_property.id)

    first = await booking_service.cancel_booking(CancelBookingRequest(booking_id=booking.id))
    second = await booking_service.cancel_booking(CancelBookingRequest(booking_id=booking.id))

    assert first.cancelled_at == second.cancelled_at
    assert second.status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_checked_out_booking_conflicts(booking_service, sample_property, test_session):
    booking = await _create(booking_service, sample_property.id)
    booking.status = BookingStatus.CHECKED_OUT
    await test_session.commit()

    with pytest.raises(ConflictError):
        await booking_service.cancel_booking(CancelBookingRequest(booking_id=booking.id))


@pytest.mark.asyncio
async def test_cancel_unknown_booking(booking_service):
    with pytest.raises(NotFoundError):
        await booking_service.cancel_booking(CancelBookingRequest(booking_id=999))


@pytest.mark.asyncio
async def test_cancelled_booking_is_not_charged(booking_service, sample_property, gateway):
    booking = await _create(booking_service, sample_property.id, payment_plan=PaymentPlan.TWO_PAYMENT)
    await booking_service.cancel_booking(CancelBookingRequest(booking_id=booking.id))

    with pytest.raises(ConflictError):
        await booking_service.charge_installment(booking.id, 2)

    assert [charge["metadata"]["installment_number"] for charge in gateway.charges] == [1]


@pytest.mark.asyncio
async def test_get_schedule_totals(booking_service, sample_property):
    booking = await _create(booking_service, sample_property.id, payment_plan=PaymentPlan.TWO_PAYMENT)

    schedule = await booking_service.get_schedule(booking.id)

    assert schedule.payment_plan == PaymentPlan.TWO_PAYMENT
    assert schedule.paid == Decimal("465.20")
    assert schedule.balance_due == Decimal("465.20")
    assert schedule.paid + schedule.balance_due == schedule.total


@pytest.mark.asyncio
async def test_get_booking_by_code(booking_service, sample_property):
    booking = await _create(booking_service, sample_property.id)

    assert (await booking_service.get_booking_by_code(booking.code)).id == booking.id
    assert await booking_service.get_booking_by_code("NOPE") is None
