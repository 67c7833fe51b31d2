"""Co-host payouts for completed bookings."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..core.money import to_minor_units
from ..core.observability import MetricsCollector
from ..gateways.base import GatewayError
from ..models.booking import Booking
from ..models.cohost import Cohost, CohostTransfer
from ..schemas.booking import BookingStatus
from .cohost_service import calculate_split
from .ports import TransferInvoker

logger = logging.getLogger(__name__)


@dataclass
class TransferSummary:
    """What one ``process_transfers`` run did."""

    booking_id: int
    already_processed: bool = False
    transferred: dict[int, Decimal] = field(default_factory=dict)
    skipped: list[int] = field(default_factory=list)
    errors: dict[int, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.errors


class TransferService:
    """Sends each active co-host their split of a booking."""

    def __init__(self, db: AsyncSession, transfers: TransferInvoker, currency: str = "usd"):
        self.db = db
        self.transfers = transfers
        self.currency = currency

    async def _get_record(self, booking_id: int, cohost_id: int) -> CohostTransfer | None:
        stmt = select(CohostTransfer).where(
            CohostTransfer.booking_id == booking_id,
            CohostTransfer.cohost_id == cohost_id,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def process_transfers(self, booking_id: int) -> TransferSummary:
        """
        Transfer every active co-host's split of a booking.

        Co-hosts without a payout account and zero amounts are skipped. A
        co-host already paid for this booking is not paid again. The booking
        is flagged ``transfers_processed`` only when no transfer failed.

        Raises:
            NotFoundError: If the booking does not exist
        """
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

        summary = TransferSummary(booking_id=booking_id)

        if booking.transfers_processed:
            summary.already_processed = True
            return summary

        if booking.status in (BookingStatus.CANCELLED, BookingStatus.REFUNDED):
            logger.info(
                "Skipping transfers for cancelled booking",
                extra={"booking_id": booking_id, "status": booking.status}
            )
            return summary

        stmt = (
            select(Cohost)
            .where(Cohost.property_id == booking.property_id, Cohost.is_active.is_(True))
            .order_by(Cohost.id)
        )
        cohosts = (await self.db.execute(stmt)).scalars().all()

        for cohost in cohosts:
            if not cohost.account_ref:
                summary.skipped.append(cohost.id)
                continue

            amount = calculate_split(booking.total, booking.security_deposit, cohost.split_type, cohost.split_value)
            if to_minor_units(amount) <= 0:
                summary.skipped.append(cohost.id)
                continue

            record = await self._get_record(booking_id, cohost.id)
            if record is not None and record.status == "succeeded":
                summary.transferred[cohost.id] = record.amount
                continue
            if record is None:
                record = CohostTransfer(booking_id=booking_id, cohost_id=cohost.id, amount=amount)
                self.db.add(record)
            record.amount = amount

            try:
                response = await self.transfers.transfer(
                    destination=cohost.account_ref,
                    amount=amount,
                    currency=self.currency,
                    transfer_group=f"booking_{booking_id}",
                    metadata={"booking_id": booking_id, "cohost_id": cohost.id},
                    idempotency_key=f"transfer-{booking_id}-{cohost.id}",
                )
            except GatewayError as e:
                record.status = "failed"
                record.error_message = e.message
                summary.errors[cohost.id] = e.message
                MetricsCollector.record_transfer("failed")
                logger.warning(
                    "Co-host transfer failed",
                    extra={
                        "booking_id": booking_id,
                        "cohost_id": cohost.id,
                        "amount": str(amount),
                        "error": e.message,
                    }
                )
                continue

            record.status = "succeeded"
            record.transfer_id = response.transfer_id
            record.error_message = None
            summary.transferred[cohost.id] = amount
            MetricsCollector.record_transfer("succeeded")

        if summary.complete:
            booking.transfers_processed = True

        await self.db.commit()

        logger.info(
            "Processed co-host transfers",
            extra={
                "booking_id": booking_id,
                "transferred": len(summary.transferred),
                "skipped": len(summary.skipped),
                "errors": len(summary.errors),
            }
        )
        return summary
