"""Payment plan scheduler: deposits, installment schedules and off-session charges."""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from ..core.exceptions import GatewayChargeFailedError, NotFoundError
from ..core.locks import installment_locks
from ..core.money import ZERO, round_money, to_decimal
from ..gateways.base import ChargeResponse, GatewayError
from ..schemas.payment_plan import (
    ChargeOutcome,
    ChargeResult,
    Installment,
    InstallmentStatus,
    PaymentPlan,
)
from ..schemas.property import PlanConfig
from .ports import (
    InstallmentStore,
    OffSessionChargeInvoker,
    PaymentMethodReader,
    PropertySettingsReader,
    StoredPaymentMethod,
)

logger = logging.getLogger(__name__)

DEFAULT_TWO_DAYS_BEFORE = 42
FOUR_PAYMENT_MIN_DAYS = 90

# Installments 2, 3 and 4 fall due this many months before check-in
FOUR_PAYMENT_MONTHS_BEFORE = (3, 2, 1)


def _initial_status(amount: Decimal) -> InstallmentStatus:
    return InstallmentStatus.PAID if amount <= ZERO else InstallmentStatus.PENDING


def installment_idempotency_key(booking_id: int, installment: Installment) -> str:
    """Gateway key for the next charge of ``installment``, fresh for each attempt after a failure."""
    key = f"installment-{booking_id}-{installment.number}"
    if installment.attempts:
        key = f"{key}-attempt-{installment.attempts + 1}"
    return key


def create_schedule(
    plan: PaymentPlan,
    deposit: Decimal,
    total: Decimal,
    check_in: date,
    days_before: int = DEFAULT_TWO_DAYS_BEFORE,
    today: Optional[date] = None,
) -> list[Installment]:
    """
    Build the installment schedule for a booking.

    Installment 1 is the up-front charge and is always ``paid``. Later
    installments with nothing left to collect are ``paid`` too, so no charge
    is ever queued for 0.00. The last installment absorbs rounding drift so
    the amounts sum to ``total``.

    Args:
        plan: Chosen payment plan
        deposit: Amount charged up front (ignored for pay-in-full)
        total: Booking total
        check_in: Arrival date
        days_before: Days before check-in the two-payment balance is due
        today: Booking date, defaults to the current date
    """
    today = today or date.today()
    total = round_money(total)

    if plan == PaymentPlan.PAY_IN_FULL:
        return [Installment(number=1, amount=total, due_date=today, status=InstallmentStatus.PAID)]

    deposit = round_money(deposit)
    first = Installment(number=1, amount=deposit, due_date=today, status=InstallmentStatus.PAID)

    if plan == PaymentPlan.TWO_PAYMENT:
        balance = round_money(total - deposit)
        return [
            first,
            Installment(
                number=2,
                amount=balance,
                due_date=check_in - timedelta(days=days_before),
                status=_initial_status(balance),
            ),
        ]

    remainder = total - deposit
    base = round_money(remainder / 3)
    last = round_money(remainder - 2 * base)
    amounts = (base, base, last)

    return [first] + [
        Installment(
            number=number,
            amount=amount,
            due_date=check_in - relativedelta(months=months),
            status=_initial_status(amount),
        )
        for number, amount, months in zip((2, 3, 4), amounts, FOUR_PAYMENT_MONTHS_BEFORE)
    ]


def compute_deposit(
    plan: PaymentPlan,
    total: Decimal,
    plan_config: PlanConfig,
    requested: Optional[Decimal] = None,
) -> Decimal:
    """
    Amount charged at booking time.

    Two-payment charges ``two_deposit_pct`` of the total. Four-payment charges
    the requested amount, raised to ``four_deposit_min_pct`` of the total when
    it is lower. Pay-in-full charges everything.
    """
    total = round_money(total)

    if plan == PaymentPlan.TWO_PAYMENT:
        return round_money(total * to_decimal(plan_config.two_deposit_pct) / 100)

    if plan == PaymentPlan.FOUR_PAYMENT:
        minimum = round_money(total * to_decimal(plan_config.four_deposit_min_pct) / 100)
        if requested is None:
            return minimum
        return min(max(round_money(requested), minimum), total)

    return total


def eligible_plans(
    plan_config: PlanConfig,
    check_in: date,
    today: Optional[date] = None,
    four_payment_min_days: int = FOUR_PAYMENT_MIN_DAYS,
) -> list[PaymentPlan]:
    """
    Plans a guest may pick for a stay starting ``check_in``.

    A plan stops being offered once check-in is inside its own payment window,
    so no installment is ever scheduled in the past.
    """
    days_until = (check_in - (today or date.today())).days
    plans = []

    if plan_config.full_enabled:
        plans.append(PaymentPlan.PAY_IN_FULL)
    if plan_config.two_enabled and days_until > plan_config.two_days_before:
        plans.append(PaymentPlan.TWO_PAYMENT)
    if plan_config.four_enabled and days_until > four_payment_min_days:
        plans.append(PaymentPlan.FOUR_PAYMENT)

    return plans


class PaymentPlanScheduler:
    """Schedules installments and charges them off-session through the gateway."""

    def __init__(
        self,
        properties: PropertySettingsReader,
        installments: InstallmentStore,
        payment_methods: PaymentMethodReader,
        charger: OffSessionChargeInvoker,
        currency: str = "usd",
        four_payment_min_days: int = FOUR_PAYMENT_MIN_DAYS,
    ):
        self.properties = properties
        self.installments = installments
        self.payment_methods = payment_methods
        self.charger = charger
        self.currency = currency
        self.four_payment_min_days = four_payment_min_days

    def create_schedule(
        self,
        plan: PaymentPlan,
        deposit: Decimal,
        total: Decimal,
        check_in: date,
        days_before: int = DEFAULT_TWO_DAYS_BEFORE,
        today: Optional[date] = None,
    ) -> list[Installment]:
        return create_schedule(plan, deposit, total, check_in, days_before=days_before, today=today)

    async def get_eligible_plans(
        self,
        property_id: int,
        check_in: date,
        today: Optional[date] = None,
    ) -> list[PaymentPlan]:
        settings = await self.properties.get_settings(property_id)
        return eligible_plans(
            settings.plan_config,
            check_in,
            today=today,
            four_payment_min_days=self.four_payment_min_days,
        )

    async def get_schedule(self, booking_id: int) -> list[Installment]:
        return await self.installments.get_installments(booking_id)

    async def charge_upfront(
        self,
        installment: Installment,
        method: StoredPaymentMethod,
        idempotency_key: str,
        metadata: dict[str, Any],
    ) -> Optional[ChargeResponse]:
        """
        Charge installment #1 before the booking is stored.

        Returns ``None`` when nothing is owed up front. The request's
        idempotency key is reused so a replayed booking request cannot charge
        the guest twice.

        Raises:
            GatewayChargeFailedError: If the gateway declines or cannot be reached
        """
        if installment.amount <= ZERO:
            return None

        try:
            response = await self.charger.charge_off_session(
                customer_ref=method.customer_ref,
                payment_method_ref=method.payment_method_ref,
                amount=installment.amount,
                currency=self.currency,
                metadata={
                    **metadata,
                    "installment_number": installment.number,
                    "source": "str_direct_booking",
                },
                idempotency_key=f"booking-{idempotency_key}-{installment.number}",
            )
        except GatewayError as e:
            logger.warning(
                "Up-front charge declined",
                extra={
                    "amount": str(installment.amount),
                    "gateway_message": e.message,
                    "idempotency_key": idempotency_key,
                }
            )
            raise GatewayChargeFailedError(e.message, installment_number=installment.number) from e

        logger.info(
            "Up-front charge succeeded",
            extra={
                "amount": str(installment.amount),
                "transaction_id": response.transaction_id,
                "idempotency_key": idempotency_key,
            }
        )
        return response

    async def charge_installment(self, booking_id: int, number: int) -> ChargeResult:
        """
        Charge one installment off-session.

        A paid installment returns ``already_processed`` without touching the
        gateway. A decline or missing payment method marks the installment
        ``failed`` and returns the message; nothing is retried here and earlier
        installments are left as they are. Each attempt after a recorded
        failure goes to the gateway under a new idempotency key.

        Raises:
            NotFoundError: If the booking has no such installment
        """
        async with installment_locks.hold((booking_id, number)):
            installment = await self.installments.get_installment(booking_id, number)
            if installment is None:
                raise NotFoundError(
                    resource_type="installment",
                    resource_id=f"{booking_id}#{number}"
                )

            if installment.status == InstallmentStatus.PAID:
                logger.info(
                    "Installment already paid - skipping charge",
                    extra={"booking_id": booking_id, "installment_number": number}
                )
                return ChargeResult(
                    booking_id=booking_id,
                    installment_number=number,
                    outcome=ChargeOutcome.ALREADY_PROCESSED,
                    amount=installment.amount,
                    transaction_id=installment.transaction_id,
                )

            method = await self.payment_methods.get_payment_method(booking_id)
            if method is None:
                return await self._fail(booking_id, installment, "No saved payment method on file.")

            try:
                response = await self.charger.charge_off_session(
                    customer_ref=method.customer_ref,
                    payment_method_ref=method.payment_method_ref,
                    amount=installment.amount,
                    currency=self.currency,
                    metadata={
                        "booking_id": booking_id,
                        "installment_number": number,
                        "source": "str_direct_booking",
                    },
                    idempotency_key=installment_idempotency_key(booking_id, installment),
                )
            except GatewayError as e:
                return await self._fail(booking_id, installment, e.message)

            await self.installments.mark_paid(booking_id, number, response.transaction_id)

            logger.info(
                "Installment charged",
                extra={
                    "booking_id": booking_id,
                    "installment_number": number,
                    "amount": str(installment.amount),
                    "transaction_id": response.transaction_id,
                }
            )

            return ChargeResult(
                booking_id=booking_id,
                installment_number=number,
                outcome=ChargeOutcome.CHARGED,
                amount=installment.amount,
                transaction_id=response.transaction_id,
            )

    async def _fail(self, booking_id: int, installment: Installment, message: str) -> ChargeResult:
        await self.installments.mark_failed(booking_id, installment.number, message)

        logger.warning(
            "Installment charge failed",
            extra={
                "booking_id": booking_id,
                "installment_number": installment.number,
                "amount": str(installment.amount),
                "gateway_message": message,
            }
        )

        return ChargeResult(
            booking_id=booking_id,
            installment_number=installment.number,
            outcome=ChargeOutcome.FAILED,
            amount=installment.amount,
            message=message,
        )
