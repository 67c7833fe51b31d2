"""SQLAlchemy implementations of the engine's collaborator protocols."""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.availability import AvailabilityDay as AvailabilityRow
from ..models.booking import Booking, PaymentInstallment
from ..models.property import Property
from ..schemas.availability import AvailabilityDay, AvailabilityStatus
from ..schemas.booking import BookingStatus
from ..schemas.payment_plan import Installment, InstallmentStatus
from ..schemas.pricing import LOSDiscountTier
from ..schemas.property import PlanConfig, PropertySettings
from .ports import StoredPaymentMethod

logger = logging.getLogger(__name__)


def property_to_settings(prop: Property) -> PropertySettings:
    """Convert property model to the settings record the engine reads."""
    return PropertySettings(
        id=prop.id,
        nightly_rate=prop.nightly_rate,
        cleaning_fee=prop.cleaning_fee,
        security_deposit=prop.security_deposit,
        tax_rate=prop.tax_rate,
        los_discounts=[LOSDiscountTier.model_validate(tier) for tier in prop.los_discounts],
        plan_config=PlanConfig.model_validate(prop),
        check_in_time=prop.check_in_time,
        check_out_time=prop.check_out_time,
    )


class SqlPropertySettingsReader:
    """Reads property settings from the ``properties`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_property(self, property_id: int) -> Property:
        prop = await self.db.get(Property, property_id)
        if prop is None:
            raise NotFoundError(resource_type="property", resource_id=str(property_id))
        return prop

    async def get_settings(self, property_id: int) -> PropertySettings:
        return property_to_settings(await self.get_property(property_id))


class SqlAvailabilityStore:
    """Per-night rows in the ``availability`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _rows(self, property_id: int, start: date, end: date) -> list[AvailabilityRow]:
        stmt = (
            select(AvailabilityRow)
            .where(
                AvailabilityRow.property_id == property_id,
                AvailabilityRow.date >= start,
                AvailabilityRow.date < end,
            )
            .order_by(AvailabilityRow.date)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_days(self, property_id: int, start: date, end: date) -> list[AvailabilityDay]:
        return [AvailabilityDay.model_validate(row) for row in await self._rows(property_id, start, end)]

    async def get_rate_overrides(self, property_id: int, start: date, end: date) -> dict[date, Decimal]:
        return {
            row.date: row.price_override
            for row in await self._rows(property_id, start, end)
            if row.price_override is not None
        }

    async def upsert_days(
        self,
        property_id: int,
        dates: Iterable[date],
        status: AvailabilityStatus,
        booking_id: Optional[int] = None,
        block_reason: Optional[str] = None,
    ) -> None:
        dates = sorted(set(dates))
        if not dates:
            return

        rows = await self._rows(property_id, dates[0], dates[-1] + timedelta(days=1))
        existing = {row.date: row for row in rows}

        for night in dates:
            row = existing.get(night)
            if row is None:
                row = AvailabilityRow(property_id=property_id, date=night)
                self.db.add(row)
            row.status = status
            row.booking_id = booking_id
            row.block_reason = block_reason

        await self.db.flush()

    async def delete_days(self, property_id: int, start: date, end: date, status: AvailabilityStatus) -> int:
        """Clear rows in the range with ``status``; rows carrying a rate override are kept as available."""
        in_range = (
            AvailabilityRow.property_id == property_id,
            AvailabilityRow.date >= start,
            AvailabilityRow.date < end,
            AvailabilityRow.status == status,
        )
        kept = await self.db.execute(
            update(AvailabilityRow)
            .where(*in_range, AvailabilityRow.price_override.is_not(None))
            .values(status=AvailabilityStatus.AVAILABLE, booking_id=None, block_reason=None)
        )
        deleted = await self.db.execute(delete(AvailabilityRow).where(*in_range))
        return (kept.rowcount or 0) + (deleted.rowcount or 0)

    async def set_price_override(self, property_id: int, night: date, rate: Optional[Decimal]) -> None:
        stmt = select(AvailabilityRow).where(
            AvailabilityRow.property_id == property_id,
            AvailabilityRow.date == night,
        )
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        if row is None:
            row = AvailabilityRow(property_id=property_id, date=night, status=AvailabilityStatus.AVAILABLE)
            self.db.add(row)
        row.price_override = rate
        await self.db.flush()


class SqlBookingOverlapReader:
    """Overlap queries against the ``bookings`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def has_overlap(
        self,
        property_id: int,
        check_in: date,
        check_out: date,
        statuses: Iterable[BookingStatus],
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        conditions = [
            Booking.property_id == property_id,
            Booking.status.in_([status.value for status in statuses]),
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        ]
        if exclude_booking_id is not None:
            conditions.append(Booking.id != exclude_booking_id)

        stmt = select(Booking.id).where(and_(*conditions)).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None


class SqlInstallmentStore:
    """Installment rows in ``payment_installments`` plus stored payment methods on ``bookings``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self, booking_id: int, number: int) -> Optional[PaymentInstallment]:
        stmt = select(PaymentInstallment).where(
            PaymentInstallment.booking_id == booking_id,
            PaymentInstallment.number == number,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_installments(self, booking_id: int) -> list[Installment]:
        stmt = (
            select(PaymentInstallment)
            .where(PaymentInstallment.booking_id == booking_id)
            .order_by(PaymentInstallment.number)
        )
        result = await self.db.execute(stmt)
        return [Installment.model_validate(row) for row in result.scalars().all()]

    async def get_installment(self, booking_id: int, number: int) -> Optional[Installment]:
        row = await self._get_row(booking_id, number)
        return Installment.model_validate(row) if row else None

    async def mark_paid(self, booking_id: int, number: int, transaction_id: str) -> None:
        row = await self._get_row(booking_id, number)
        row.status = InstallmentStatus.PAID
        row.transaction_id = transaction_id
        row.failure_message = None
        row.attempts += 1
        row.paid_at = datetime.utcnow()
        await self.db.commit()

    async def mark_failed(self, booking_id: int, number: int, message: str) -> None:
        row = await self._get_row(booking_id, number)
        row.status = InstallmentStatus.FAILED
        row.failure_message = message
        row.attempts += 1
        await self.db.commit()

    async def get_payment_method(self, booking_id: int) -> Optional[StoredPaymentMethod]:
        booking = await self.db.get(Booking, booking_id)
        if booking is None or not booking.payment_customer_ref or not booking.payment_method_ref:
            return None
        return StoredPaymentMethod(
            customer_ref=booking.payment_customer_ref,
            payment_method_ref=booking.payment_method_ref,
        )
