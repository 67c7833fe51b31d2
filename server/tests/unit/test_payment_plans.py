"""Unit tests for payment plan schedules, eligibility and installment charges."""

from datetime import date
from decimal import Decimal

import pytest
from conftest import FakeGateway, make_booking_request

from str_booking.core.dependencies import build_booking_engine
from str_booking.core.exceptions import NotFoundError
from str_booking.schemas.payment_plan import ChargeOutcome, Installment, InstallmentStatus, PaymentPlan
from str_booking.schemas.property import PlanConfig
from str_booking.services.payment_plan_service import (
    compute_deposit,
    create_schedule,
    eligible_plans,
    installment_idempotency_key,
)

TODAY = date(2026, 1, 10)
CHECK_IN = date(2026, 6, 1)


def test_pay_in_full_is_one_paid_installment():
    schedule = create_schedule(PaymentPlan.PAY_IN_FULL, Decimal("0"), Decimal("930.40"), CHECK_IN, today=TODAY)

    assert len(schedule) == 1
    assert schedule[0].amount == Decimal("930.40")
    assert schedule[0].status == InstallmentStatus.PAID
    assert schedule[0].due_date == TODAY


def test_two_payment_split():
    deposit = compute_deposit(PaymentPlan.TWO_PAYMENT, Decimal("930.40"), PlanConfig(two_deposit_pct=Decimal("50")))
    schedule = create_schedule(PaymentPlan.TWO_PAYMENT, deposit, Decimal("930.40"), CHECK_IN, today=TODAY)

    assert deposit == Decimal("465.20")
    assert [i.amount for i in schedule] == [Decimal("465.20"), Decimal("465.20")]
    assert [i.status for i in schedule] == [InstallmentStatus.PAID, InstallmentStatus.PENDING]
    assert schedule[1].due_date == date(2026, 4, 20)


def test_two_payment_custom_days_before():
    schedule = create_schedule(
        PaymentPlan.TWO_PAYMENT, Decimal("100"), Decimal("300"), CHECK_IN, days_before=30, today=TODAY
    )

    assert schedule[1].due_date == date(2026, 5, 2)
    assert schedule[1].amount == Decimal("200.00")


def test_four_payment_exact_division():
    schedule = create_schedule(PaymentPlan.FOUR_PAYMENT, Decimal("250"), Decimal("1000"), CHECK_IN, today=TODAY)

    assert [i.amount for i in schedule] == [Decimal("250.00")] * 4
    assert [i.due_date for i in schedule[1:]] == [date(2026, 3, 1), date(2026, 4, 1), date(2026, 5, 1)]


def test_four_payment_last_installment_absorbs_drift():
    schedule = create_schedule(PaymentPlan.FOUR_PAYMENT, Decimal("250"), Decimal("1000.01"), CHECK_IN, today=TODAY)

    assert [i.amount for i in schedule] == [
        Decimal("250.00"),
        Decimal("250.00"),
        Decimal("250.00"),
        Decimal("250.01"),
    ]
    assert sum(i.amount for i in schedule) == Decimal("1000.01")


def test_four_payment_month_end_clamps():
    schedule = create_schedule(
        PaymentPlan.FOUR_PAYMENT, Decimal("100"), Decimal("400"), date(2026, 5, 31), today=TODAY
    )

    assert [i.due_date for i in schedule[1:]] == [date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)]


def test_four_payment_deposit_raised_to_minimum():
    config = PlanConfig(four_enabled=True, four_deposit_min_pct=Decimal("25"))

    assert compute_deposit(PaymentPlan.FOUR_PAYMENT, Decimal("1000"), config, Decimal("100")) == Decimal("250.00")
    assert compute_deposit(PaymentPlan.FOUR_PAYMENT, Decimal("1000"), config, Decimal("400")) == Decimal("400.00")
    assert compute_deposit(PaymentPlan.FOUR_PAYMENT, Decimal("1000"), config) == Decimal("250.00")
    assert compute_deposit(PaymentPlan.FOUR_PAYMENT, Decimal("1000"), config, Decimal("5000")) == Decimal("1000.00")


def test_installments_with_nothing_owed_are_paid():
    config = PlanConfig(four_enabled=True, two_deposit_pct=Decimal("100"))

    deposit = compute_deposit(PaymentPlan.FOUR_PAYMENT, Decimal("1000"), config, Decimal("1000"))
    schedule = create_schedule(PaymentPlan.FOUR_PAYMENT, deposit, Decimal("1000"), CHECK_IN, today=TODAY)

    assert [i.amount for i in schedule] == [Decimal("1000.00")] + [Decimal("0.00")] * 3
    assert all(i.status == InstallmentStatus.PAID for i in schedule)

    deposit = compute_deposit(PaymentPlan.TWO_PAYMENT, Decimal("1000"), config)
    schedule = create_schedule(PaymentPlan.TWO_PAYMENT, deposit, Decimal("1000"), CHECK_IN, today=TODAY)

    assert [(i.amount, i.status) for i in schedule] == [
        (Decimal("1000.00"), InstallmentStatus.PAID),
        (Decimal("0.00"), InstallmentStatus.PAID),
    ]


def test_eligibility_windows():
    config = PlanConfig(full_enabled=True, two_enabled=True, two_days_before=42, four_enabled=True)

    assert eligible_plans(config, date(2026, 1, 30), today=TODAY) == [PaymentPlan.PAY_IN_FULL]
    assert eligible_plans(config, date(2026, 3, 1), today=TODAY) == [
        PaymentPlan.PAY_IN_FULL,
        PaymentPlan.TWO_PAYMENT,
    ]
    assert eligible_plans(config, CHECK_IN, today=TODAY) == [
        PaymentPlan.PAY_IN_FULL,
        PaymentPlan.TWO_PAYMENT,
        PaymentPlan.FOUR_PAYMENT,
    ]


def test_eligibility_boundaries_are_exclusive():
    config = PlanConfig(two_enabled=True, two_days_before=42, four_enabled=True)

    # exactly 42 and 90 days out: neither installment plan is offered
    assert eligible_plans(config, date(2026, 2, 21), today=TODAY) == [PaymentPlan.PAY_IN_FULL]
    assert PaymentPlan.FOUR_PAYMENT not in eligible_plans(config, date(2026, 4, 10), today=TODAY)
    assert PaymentPlan.FOUR_PAYMENT in eligible_plans(config, date(2026, 4, 11), today=TODAY)


def test_disabled_plans_not_offered():
    config = PlanConfig(full_enabled=False, two_enabled=False, four_enabled=False)

    assert eligible_plans(config, CHECK_IN, today=TODAY) == []


async def _four_payment_booking(booking_service, sample_property, **overrides):
    request = make_booking_request(
        sample_property.id,
        CHECK_IN,
        7,
        payment_plan=PaymentPlan.FOUR_PAYMENT,
        **overrides,
    )
    return await booking_service.create_booking(request, "key-four", today=TODAY)


@pytest.mark.asyncio
async def test_charge_installment(booking_service, sample_property, gateway):
    booking = await _four_payment_booking(booking_service, sample_property)

    result = await booking_service.charge_installment(booking.id, 2)

    assert result.outcome == ChargeOutcome.CHARGED
    assert result.transaction_id == "pi_2"
    # the up-front charge at booking time, then installment 2
    assert len(gateway.charges) == 2
    charge = gateway.charges[1]
    assert charge["customer_ref"] == "cus_123"
    assert charge["payment_method_ref"] == "pm_123"
    assert charge["amount"] == result.amount
    assert charge["idempotency_key"] == f"installment-{booking.id}-2"
    assert charge["metadata"]["installment_number"] == 2

    schedule = await booking_service.get_schedule(booking.id)
    assert schedule.installments[1].status == InstallmentStatus.PAID
    assert schedule.paid == schedule.installments[0].amount + schedule.installments[1].amount


@pytest.mark.asyncio
async def test_charging_paid_installment_is_a_no_op(booking_service, sample_property, gateway):
    booking = await _four_payment_booking(booking_service, sample_property)

    first = await booking_service.charge_installment(booking.id, 1)
    await booking_service.charge_installment(booking.id, 3)
    again = await booking_service.charge_installment(booking.id, 3)

    assert first.outcome == ChargeOutcome.ALREADY_PROCESSED
    assert first.transaction_id == "pi_1"
    assert again.outcome == ChargeOutcome.ALREADY_PROCESSED
    assert len(gateway.charges) == 2


@pytest.mark.asyncio
async def test_declined_charge_marks_installment_failed(test_session, booking_service, sample_property):
    booking = await _four_payment_booking(booking_service, sample_property)
    declining = build_booking_engine(test_session, FakeGateway(fail_with="Your card was declined."))

    result = await declining.payment_plans.charge_installment(booking.id, 2)

    assert result.outcome == ChargeOutcome.FAILED
    assert result.message == "Your card was declined."
    installments = await declining.payment_plans.get_schedule(booking.id)
    assert [i.status for i in installments] == [
        InstallmentStatus.PAID,
        InstallmentStatus.FAILED,
        InstallmentStatus.PENDING,
        InstallmentStatus.PENDING,
    ]
    assert installments[1].failure_message == "Your card was declined."
    assert installments[2].failure_message is None

    schedule = await booking_service.get_schedule(booking.id)
    assert schedule.installments[1].failure_message == "Your card was declined."


@pytest.mark.asyncio
async def test_failed_installment_can_be_retried(test_session, booking_service, sample_property, gateway):
    booking = await _four_payment_booking(booking_service, sample_property)
    declining_gateway = FakeGateway(fail_with="Insufficient funds.")
    declining = build_booking_engine(test_session, declining_gateway)
    await declining.payment_plans.charge_installment(booking.id, 2)

    result = await booking_service.charge_installment(booking.id, 2)

    assert result.outcome == ChargeOutcome.CHARGED
    assert len(gateway.charges) == 2
    # a retry after a recorded decline must not replay the declined request
    assert declining_gateway.charges[0]["idempotency_key"] == f"installment-{booking.id}-2"
    assert gateway.charges[1]["idempotency_key"] == f"installment-{booking.id}-2-attempt-2"

    installment = (await booking_service.get_schedule(booking.id)).installments[1]
    assert installment.status == InstallmentStatus.PAID
    assert installment.failure_message is None
    assert installment.attempts == 2


def test_idempotency_key_changes_per_attempt():
    pending = Installment(number=3, amount=Decimal("155.07"), due_date=CHECK_IN, status=InstallmentStatus.PENDING)

    assert installment_idempotency_key(7, pending) == "installment-7-3"
    assert installment_idempotency_key(7, pending.model_copy(update={"attempts": 1})) == "installment-7-3-attempt-2"
    assert installment_idempotency_key(7, pending.model_copy(update={"attempts": 2})) == "installment-7-3-attempt-3"


@pytest.mark.asyncio
async def test_charge_without_saved_payment_method(test_session, booking_service, sample_property, gateway):
    booking = await _four_payment_booking(booking_service, sample_property)
    booking.payment_customer_ref = None
    booking.payment_method_ref = None
    await test_session.commit()

    result = await booking_service.charge_installment(booking.id, 2)

    assert result.outcome == ChargeOutcome.FAILED
    assert result.message == "No saved payment method on file."
    assert len(gateway.charges) == 1


@pytest.mark.asyncio
async def test_charge_unknown_installment(booking_service, sample_property):
    booking = await _four_payment_booking(booking_service, sample_property)

    with pytest.raises(NotFoundError):
        await booking_service.charge_installment(booking.id, 9)
