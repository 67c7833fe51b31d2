"""Availability checker: per-night status and booking overlap."""

import logging
from datetime import date
from typing import Optional

from ..core.locks import availability_locks
from ..models.booking import OCCUPYING_STATUSES
from ..schemas.availability import AvailabilityDay, AvailabilityStatus
from ..schemas.common import DateRange
from .ports import AvailabilityStore, BookingOverlapReader

logger = logging.getLogger(__name__)


class AvailabilityChecker:
    """Decides whether a stay is free and records booked and blocked nights."""

    def __init__(self, store: AvailabilityStore, bookings: BookingOverlapReader):
        self.store = store
        self.bookings = bookings

    async def is_available(
        self,
        property_id: int,
        date_range: DateRange,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        """
        Return True only if every night is available and no live booking overlaps.

        Overlap is the open-interval test
        ``existing.check_in < check_out and existing.check_out > check_in``.
        """
        days = await self.store.get_days(property_id, date_range.check_in, date_range.check_out)
        unavailable = [day for day in days if day.status != AvailabilityStatus.AVAILABLE]
        if unavailable:
            logger.debug(
                "Range contains unavailable nights",
                extra={
                    "property_id": property_id,
                    "check_in": date_range.check_in.isoformat(),
                    "check_out": date_range.check_out.isoformat(),
                    "first_unavailable": unavailable[0].date.isoformat(),
                }
            )
            return False

        return not await self.bookings.has_overlap(
            property_id,
            date_range.check_in,
            date_range.check_out,
            OCCUPYING_STATUSES,
            exclude_booking_id=exclude_booking_id,
        )

    async def mark_booked(self, property_id: int, date_range: DateRange, booking_id: int) -> None:
        """Upsert one ``booked`` row per night; repeating the call changes nothing."""
        async with availability_locks.hold((property_id, date_range.check_in, date_range.check_out)):
            await self.store.upsert_days(
                property_id,
                date_range.dates(),
                AvailabilityStatus.BOOKED,
                booking_id=booking_id,
            )

        logger.info(
            "Marked dates booked",
            extra={
                "property_id": property_id,
                "booking_id": booking_id,
                "check_in": date_range.check_in.isoformat(),
                "check_out": date_range.check_out.isoformat(),
            }
        )

    async def mark_available(self, property_id: int, date_range: DateRange) -> int:
        """
        Release the booked nights in a range.

        Only ``booked`` rows are deleted, so nights blocked by a calendar import
        stay blocked after a cancellation.
        """
        async with availability_locks.hold((property_id, date_range.check_in, date_range.check_out)):
            released = await self.store.delete_days(
                property_id,
                date_range.check_in,
                date_range.check_out,
                AvailabilityStatus.BOOKED,
            )

        logger.info(
            "Released booked dates",
            extra={
                "property_id": property_id,
                "check_in": date_range.check_in.isoformat(),
                "check_out": date_range.check_out.isoformat(),
                "released": released,
            }
        )
        return released

    async def block_dates(self, property_id: int, date_range: DateRange, reason: str) -> int:
        """
        Block the nights in the range, e.g. for an imported external reservation.

        Nights already booked here keep their booking. Returns the number of
        nights written.
        """
        async with availability_locks.hold((property_id, date_range.check_in, date_range.check_out)):
            days = await self.store.get_days(property_id, date_range.check_in, date_range.check_out)
            booked = {day.date for day in days if day.status == AvailabilityStatus.BOOKED}
            nights = [night for night in date_range.dates() if night not in booked]
            await self.store.upsert_days(
                property_id,
                nights,
                AvailabilityStatus.BLOCKED,
                block_reason=reason,
            )
        return len(nights)

    async def get_calendar(self, property_id: int, start: date, end: date) -> list[AvailabilityDay]:
        """Stored rows for ``[start, end)``; nights without a row are available."""
        return await self.store.get_days(property_id, start, end)
