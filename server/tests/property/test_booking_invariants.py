"""Property-based tests for pricing, payment plan and split invariants."""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import assume, given
from hypothesis import strategies as st
from pydantic import ValidationError

from str_booking.core.money import round_money
from str_booking.schemas.cohost import SplitType
from str_booking.schemas.payment_plan import InstallmentStatus, PaymentPlan
from str_booking.schemas.pricing import DailyRate, LOSDiscountTier
from str_booking.schemas.property import CreatePropertyRequest, PlanConfig
from str_booking.services.cohost_service import calculate_split, transferable_base
from str_booking.services.payment_plan_service import (
    FOUR_PAYMENT_MIN_DAYS,
    compute_deposit,
    create_schedule,
    eligible_plans,
)
from str_booking.services.pricing_service import price_stay, select_los_discount

TODAY = date(2026, 1, 10)

# Strategies for generating test data
cents = st.integers(min_value=0, max_value=5_000_000).map(lambda c: Decimal(c) / 100)
positive_cents = st.integers(min_value=1, max_value=5_000_000).map(lambda c: Decimal(c) / 100)
fractions = st.integers(min_value=0, max_value=100).map(lambda p: Decimal(p) / 100)
percents = st.integers(min_value=1, max_value=100).map(Decimal)
plans = st.sampled_from(list(PaymentPlan))
lead_days = st.integers(min_value=1, max_value=720)


@given(
    rates=st.lists(cents, min_size=1, max_size=60),
    discount=fractions,
    min_nights=st.integers(min_value=1, max_value=30),
    cleaning_fee=cents,
    security_deposit=cents,
    tax_rate=st.integers(min_value=0, max_value=250).map(lambda p: Decimal(p) / 1000),
)
def test_total_is_sum_of_rounded_parts(rates, discount, min_nights, cleaning_fee, security_deposit, tax_rate):
    """The total is exactly the sum of the rounded parts the guest sees."""
    daily_rates = [DailyRate(date=TODAY + timedelta(days=i), rate=rate) for i, rate in enumerate(rates)]

    breakdown = price_stay(
        daily_rates,
        [LOSDiscountTier(min_nights=min_nights, discount=discount)],
        cleaning_fee=cleaning_fee,
        security_deposit=security_deposit,
        tax_rate=tax_rate,
    )

    discounted = round_money(breakdown.nightly_subtotal * (1 - breakdown.los_discount_rate))
    assert breakdown.nights == len(rates)
    assert breakdown.nightly_subtotal == round_money(sum(rates, Decimal("0")))
    assert breakdown.taxes == round_money(discounted * tax_rate)
    assert breakdown.total == discounted + cleaning_fee + breakdown.taxes + security_deposit
    assert Decimal("0") <= breakdown.los_discount <= breakdown.nightly_subtotal
    assert breakdown.total >= security_deposit + cleaning_fee


@given(
    min_nights=st.lists(st.integers(min_value=1, max_value=60), max_size=6, unique=True),
    discounts=st.lists(fractions, min_size=6, max_size=6),
    nights=st.integers(min_value=1, max_value=90),
)
def test_los_discount_never_shrinks_with_longer_stays(min_nights, discounts, nights):
    """Any tier set a property accepts gives longer stays at least the same discount."""
    tiers = [LOSDiscountTier(min_nights=n, discount=d) for n, d in zip(min_nights, discounts)]
    try:
        request = CreatePropertyRequest(name="Cabin", nightly_rate=Decimal("100"), los_discounts=tiers)
    except ValidationError:
        ordered = sorted(tiers, key=lambda tier: tier.min_nights)
        assert any(b.discount < a.discount for a, b in zip(ordered, ordered[1:]))
        return

    assert select_los_discount(nights, request.los_discounts) <= select_los_discount(nights + 1, request.los_discounts)


@given(
    min_nights=st.lists(st.integers(min_value=1, max_value=60), min_size=1, max_size=6, unique=True),
    discounts=st.lists(fractions, min_size=6, max_size=6),
)
def test_los_discount_monotonic_over_accepted_tiers(min_nights, discounts):
    """Sorting discounts to match min_nights always yields an accepted, monotonic tier set."""
    tiers = [
        LOSDiscountTier(min_nights=n, discount=d)
        for n, d in zip(sorted(min_nights), sorted(discounts[: len(min_nights)]))
    ]
    request = CreatePropertyRequest(name="Cabin", nightly_rate=Decimal("100"), los_discounts=tiers)

    rates = [select_los_discount(nights, request.los_discounts) for nights in range(1, 62)]
    assert rates == sorted(rates)
    assert rates[-1] == max(tier.discount for tier in tiers)


@given(
    plan=plans,
    total=cents,
    requested=st.one_of(st.none(), cents),
    two_pct=percents,
    four_pct=percents,
    lead=st.integers(min_value=91, max_value=720),
)
def test_schedule_sums_to_total(plan, total, requested, two_pct, four_pct, lead):
    """Installments always add up to the booking total and none is negative."""
    config = PlanConfig(two_enabled=True, four_enabled=True, two_deposit_pct=two_pct, four_deposit_min_pct=four_pct)
    deposit = compute_deposit(plan, total, config, requested)
    check_in = TODAY + timedelta(days=lead)

    schedule = create_schedule(plan, deposit, total, check_in, today=TODAY)

    expected_count = {PaymentPlan.PAY_IN_FULL: 1, PaymentPlan.TWO_PAYMENT: 2, PaymentPlan.FOUR_PAYMENT: 4}[plan]
    assert len(schedule) == expected_count
    assert [i.number for i in schedule] == list(range(1, expected_count + 1))
    assert sum((i.amount for i in schedule), Decimal("0")) == round_money(total)
    assert all(i.amount >= 0 for i in schedule)

    # The up-front installment is paid; later ones are pending unless nothing is owed
    assert schedule[0].status == InstallmentStatus.PAID
    assert schedule[0].due_date == TODAY
    assert all(
        i.status == (InstallmentStatus.PENDING if i.amount > 0 else InstallmentStatus.PAID)
        for i in schedule[1:]
    )
    assert all(TODAY < i.due_date < check_in for i in schedule[1:])
    assert [i.due_date for i in schedule] == sorted(i.due_date for i in schedule)


@given(total=cents, requested=st.one_of(st.none(), cents), four_pct=percents)
def test_four_payment_deposit_bounds(total, requested, four_pct):
    config = PlanConfig(four_enabled=True, four_deposit_min_pct=four_pct)

    deposit = compute_deposit(PaymentPlan.FOUR_PAYMENT, total, config, requested)

    assert round_money(total * four_pct / 100) <= deposit <= round_money(total)


@given(lead=lead_days, two_days_before=st.integers(min_value=1, max_value=180))
def test_eligible_plans_never_schedule_in_the_past(lead, two_days_before):
    config = PlanConfig(two_enabled=True, four_enabled=True, two_days_before=two_days_before)
    check_in = TODAY + timedelta(days=lead)

    offered = eligible_plans(config, check_in, today=TODAY)

    assert PaymentPlan.PAY_IN_FULL in offered
    assert (PaymentPlan.TWO_PAYMENT in offered) == (lead > two_days_before)
    assert (PaymentPlan.FOUR_PAYMENT in offered) == (lead > FOUR_PAYMENT_MIN_DAYS)

    for plan in offered:
        deposit = compute_deposit(plan, Decimal("1000.00"), config)
        schedule = create_schedule(plan, deposit, Decimal("1000.00"), check_in, two_days_before, today=TODAY)
        assert all(i.due_date > TODAY for i in schedule[1:])


@given(
    total=cents,
    security_deposit=cents,
    split_type=st.sampled_from(list(SplitType)),
    value=st.one_of(fractions, cents),
)
def test_split_never_exceeds_transferable_base(total, security_deposit, split_type, value):
    if split_type == SplitType.PERCENTAGE:
        assume(value <= 1)

    amount = calculate_split(total, security_deposit, split_type, value)
    base = transferable_base(total, security_deposit)

    assert amount >= 0
    assert amount <= max(base, Decimal("0"))
    assert amount == round_money(amount)


@given(
    total=positive_cents,
    shares=st.lists(st.integers(min_value=0, max_value=20).map(lambda p: Decimal(p) / 100), min_size=1, max_size=5),
)
def test_percentage_shares_within_one_stay_within_base(total, shares):
    paid = sum(
        (calculate_split(total, Decimal("0"), SplitType.PERCENTAGE, share) for share in shares),
        Decimal("0"),
    )

    # Each share rounds half-up on its own, so the sum may drift by half a cent per co-host
    assert paid <= round_money(total) + Decimal("0.005") * len(shares)
