"""Pricing engine: nightly rates, length-of-stay discounts, taxes and fees."""

import logging
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from ..core.exceptions import InvalidNightsError
from ..core.money import ZERO, round_money, to_decimal
from ..schemas.common import DateRange
from ..schemas.pricing import DailyRate, LOSDiscountTier, PricingBreakdown
from .ports import AvailabilityStore, PropertySettingsReader

logger = logging.getLogger(__name__)


def select_los_discount(nights: int, tiers: Iterable[LOSDiscountTier]) -> Decimal:
    """Return the discount of the highest ``min_nights`` tier the stay reaches, else 0."""
    for tier in sorted(tiers, key=lambda t: t.min_nights, reverse=True):
        if nights >= tier.min_nights:
            return to_decimal(tier.discount)
    return Decimal("0")


def resolve_tax_rate(property_rate: Optional[Decimal], default_rate: Decimal) -> Decimal:
    """A property rate wins when it is set and nonzero."""
    if property_rate:
        return to_decimal(property_rate)
    return to_decimal(default_rate)


def build_daily_rates(
    date_range: DateRange,
    base_rate: Decimal,
    overrides: Mapping,
) -> list[DailyRate]:
    return [
        DailyRate(date=night, rate=round_money(overrides.get(night, base_rate)))
        for night in date_range.dates()
    ]


def price_stay(
    daily_rates: Sequence[DailyRate],
    los_discounts: Iterable[LOSDiscountTier] = (),
    cleaning_fee: Decimal = ZERO,
    security_deposit: Decimal = ZERO,
    tax_rate: Decimal = ZERO,
) -> PricingBreakdown:
    """
    Price a stay from its nightly rates.

    Every intermediate amount is rounded half-up to cents, so the total is
    ``discounted + cleaning_fee + taxes + security_deposit`` with
    ``discounted = round(subtotal * (1 - discount))`` and
    ``taxes = round(discounted * tax_rate)``. Fees and the deposit are not taxed.

    Raises:
        InvalidNightsError: If no nights are given
    """
    nights = len(daily_rates)
    if nights < 1:
        raise InvalidNightsError(nights)

    cleaning_fee = round_money(cleaning_fee)
    security_deposit = round_money(security_deposit)
    tax_rate = to_decimal(tax_rate)

    nightly_subtotal = round_money(sum((day.rate for day in daily_rates), Decimal("0")))
    average_rate = round_money(nightly_subtotal / nights)

    discount_rate = select_los_discount(nights, los_discounts)
    discounted_subtotal = round_money(nightly_subtotal * (1 - discount_rate))
    los_discount = round_money(nightly_subtotal * discount_rate)

    taxes = round_money(discounted_subtotal * tax_rate)
    total = round_money(discounted_subtotal + cleaning_fee + taxes + security_deposit)

    return PricingBreakdown(
        nights=nights,
        nightly_rate=average_rate,
        nightly_subtotal=nightly_subtotal,
        los_discount=los_discount,
        los_discount_rate=discount_rate,
        discounted_subtotal=discounted_subtotal,
        cleaning_fee=cleaning_fee,
        security_deposit=security_deposit,
        taxes=taxes,
        tax_rate=tax_rate,
        total=total,
        daily_breakdown=list(daily_rates),
    )


class PricingEngine:
    """Quotes stays using a property's settings and per-night rate overrides."""

    def __init__(
        self,
        properties: PropertySettingsReader,
        availability: AvailabilityStore,
        default_tax_rate: Decimal = ZERO,
    ):
        self.properties = properties
        self.availability = availability
        self.default_tax_rate = to_decimal(default_tax_rate)

    async def calculate(self, property_id: int, date_range: DateRange, guests: int = 1) -> PricingBreakdown:
        """
        Calculate the full price breakdown for a stay.

        Args:
            property_id: Property to price
            date_range: Validated stay range
            guests: Number of guests

        Returns:
            Pricing breakdown with one daily rate per night

        Raises:
            NotFoundError: If the property does not exist
            InvalidNightsError: If the range has no nights
        """
        settings = await self.properties.get_settings(property_id)
        overrides = await self.availability.get_rate_overrides(
            property_id, date_range.check_in, date_range.check_out
        )

        breakdown = price_stay(
            build_daily_rates(date_range, settings.nightly_rate, overrides),
            los_discounts=settings.los_discounts,
            cleaning_fee=settings.cleaning_fee,
            security_deposit=settings.security_deposit,
            tax_rate=resolve_tax_rate(settings.tax_rate, self.default_tax_rate),
        )

        logger.debug(
            "Calculated stay pricing",
            extra={
                "property_id": property_id,
                "check_in": date_range.check_in.isoformat(),
                "check_out": date_range.check_out.isoformat(),
                "guests": guests,
                "nights": breakdown.nights,
                "overrides": len(overrides),
                "total": str(breakdown.total),
            }
        )

        return breakdown
