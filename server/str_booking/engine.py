"""
Booking engine facade.

Composes the four engine components from injected collaborators and exposes
the calls a host needs: availability, pricing, installment schedules and
co-host splits. ``core/dependencies.py`` builds one per request from the
SQLAlchemy repositories; other hosts can pass their own implementations.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from .core.config import settings
from .schemas.common import DateRange
from .schemas.payment_plan import Installment, PaymentPlan
from .schemas.pricing import PricingBreakdown
from .services.availability_service import AvailabilityChecker
from .services.cohost_service import CohostSplitCalculator
from .services.payment_plan_service import DEFAULT_TWO_DAYS_BEFORE, PaymentPlanScheduler
from .services.ports import (
    AvailabilityStore,
    BookingOverlapReader,
    InstallmentStore,
    OffSessionChargeInvoker,
    PaymentMethodReader,
    PropertySettingsReader,
)
from .services.pricing_service import PricingEngine


@dataclass
class BookingEngine:
    """The pricing, availability, payment plan and co-host components of one host."""

    pricing: PricingEngine
    availability: AvailabilityChecker
    payment_plans: PaymentPlanScheduler
    cohosts: CohostSplitCalculator

    @classmethod
    def compose(
        cls,
        properties: PropertySettingsReader,
        availability_store: AvailabilityStore,
        bookings: BookingOverlapReader,
        installments: InstallmentStore,
        payment_methods: PaymentMethodReader,
        charger: OffSessionChargeInvoker,
        default_tax_rate: Optional[Decimal] = None,
        currency: Optional[str] = None,
    ) -> "BookingEngine":
        """Wire the components together; omitted options come from ``Settings``."""
        return cls(
            pricing=PricingEngine(
                properties,
                availability_store,
                default_tax_rate=settings.default_tax_rate if default_tax_rate is None else default_tax_rate,
            ),
            availability=AvailabilityChecker(availability_store, bookings),
            payment_plans=PaymentPlanScheduler(
                properties,
                installments,
                payment_methods,
                charger,
                currency=currency or settings.currency,
                four_payment_min_days=settings.four_payment_min_days,
            ),
            cohosts=CohostSplitCalculator(),
        )

    async def check_availability(self, property_id: int, check_in: date, check_out: date) -> bool:
        return await self.availability.is_available(property_id, DateRange.of(check_in, check_out))

    async def calculate_pricing(
        self,
        property_id: int,
        check_in: date,
        check_out: date,
        guests: int = 1,
    ) -> PricingBreakdown:
        return await self.pricing.calculate(property_id, DateRange.of(check_in, check_out), guests)

    def build_installment_schedule(
        self,
        plan: PaymentPlan,
        deposit: Decimal,
        total: Decimal,
        check_in: date,
        days_before: int = DEFAULT_TWO_DAYS_BEFORE,
        today: Optional[date] = None,
    ) -> list[Installment]:
        return self.payment_plans.create_schedule(plan, deposit, total, check_in, days_before=days_before, today=today)

    def calculate_cohost_split(self, total: Decimal, deposit: Decimal, cohost) -> Decimal:
        return self.cohosts.calculate_split(total, deposit, cohost)
