"""iCal export of a property's occupied nights and import of external feeds."""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

import httpx
from dateutil.relativedelta import relativedelta
from icalendar import Calendar, Event
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import InvalidDateRangeError, NotFoundError
from ..core.observability import MetricsCollector
from ..models.booking import Booking
from ..models.calendar_import import CalendarImport
from ..models.property import Property
from ..schemas.availability import AvailabilityStatus
from ..schemas.booking import BookingStatus
from ..schemas.calendar import AddFeedRequest, SyncStatus
from ..schemas.common import DateRange
from .availability_service import AvailabilityChecker

logger = logging.getLogger(__name__)

EXPORT_MONTHS_BACK = 3
EXPORT_MONTHS_AHEAD = 12

# Bookings that appear in the exported feed
EXPORTED_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
    BookingStatus.CHECKED_OUT,
)


def group_consecutive(nights: list[date]) -> list[tuple[date, date]]:
    """Collapse nights into ``(start, end)`` runs with ``end`` exclusive."""
    runs: list[tuple[date, date]] = []
    for night in sorted(set(nights)):
        if runs and runs[-1][1] == night:
            runs[-1] = (runs[-1][0], night + timedelta(days=1))
        else:
            runs.append((night, night + timedelta(days=1)))
    return runs


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_events(payload: bytes | str) -> list[DateRange]:
    """
    Stay ranges of every VEVENT in an iCal document.

    ``DTEND`` is exclusive. Events missing either bound or ending on or before
    their start are skipped.
    """
    calendar = Calendar.from_ical(payload)
    ranges = []

    for component in calendar.walk("VEVENT"):
        start = component.get("dtstart")
        end = component.get("dtend")
        if start is None or end is None:
            continue
        try:
            ranges.append(DateRange.of(_as_date(start.dt), _as_date(end.dt)))
        except InvalidDateRangeError:
            logger.debug("Skipping zero-length event", extra={"uid": str(component.get("uid"))})

    return ranges


class CalendarSyncService:
    """Service for iCal feeds in both directions."""

    def __init__(
        self,
        db: AsyncSession,
        availability: AvailabilityChecker,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.db = db
        self.availability = availability
        self._client = client

    async def export_ical(self, property_id: int, today: Optional[date] = None) -> str:
        """
        Render the property's confirmed stays and blocked nights as an iCal document.

        The window runs from three months back to twelve months ahead.

        Raises:
            NotFoundError: If the property does not exist
        """
        prop = await self.db.get(Property, property_id)
        if prop is None:
            raise NotFoundError(resource_type="property", resource_id=str(property_id))

        today = today or date.today()
        window_start = today - relativedelta(months=EXPORT_MONTHS_BACK)
        window_end = today + relativedelta(months=EXPORT_MONTHS_AHEAD)
        stamp = datetime.utcnow()

        calendar = Calendar()
        calendar.add("prodid", "-//STR Direct Booking//EN")
        calendar.add("version", "2.0")
        calendar.add("calscale", "GREGORIAN")
        calendar.add("method", "PUBLISH")
        calendar.add("x-wr-calname", prop.name)

        stmt = (
            select(Booking)
            .where(
                Booking.property_id == property_id,
                Booking.status.in_([status.value for status in EXPORTED_STATUSES]),
                Booking.check_out >= window_start,
                Booking.check_in <= window_end,
            )
            .order_by(Booking.check_in)
        )
        bookings = (await self.db.execute(stmt)).scalars().all()

        for booking in bookings:
            event = Event()
            event.add("uid", f"str-booking-{booking.id}@{settings.calendar_uid_domain}")
            event.add("dtstamp", stamp)
            event.add("dtstart", booking.check_in)
            event.add("dtend", booking.check_out)
            event.add("summary", "Booked")
            event.add("description", "Direct booking")
            calendar.add_component(event)

        days = await self.availability.get_calendar(property_id, window_start, window_end)
        blocked = [day.date for day in days if day.status == AvailabilityStatus.BLOCKED]

        for start, end in group_consecutive(blocked):
            event = Event()
            event.add("uid", f"str-block-{property_id}-{start:%Y%m%d}@{settings.calendar_uid_domain}")
            event.add("dtstamp", stamp)
            event.add("dtstart", start)
            event.add("dtend", end)
            event.add("summary", "Not available")
            calendar.add_component(event)

        return calendar.to_ical().decode("utf-8")

    async def add_feed(self, request: AddFeedRequest) -> CalendarImport:
        """
        Subscribe a property to an external feed.

        Raises:
            NotFoundError: If the property does not exist
        """
        if await self.db.get(Property, request.property_id) is None:
            raise NotFoundError(resource_type="property", resource_id=str(request.property_id))

        feed = CalendarImport(
            property_id=request.property_id,
            feed_url=str(request.feed_url),
            platform=request.platform,
            sync_status=SyncStatus.PENDING,
        )
        self.db.add(feed)
        await self.db.commit()
        await self.db.refresh(feed)

        logger.info(
            "Calendar feed added",
            extra={"feed_id": feed.id, "property_id": request.property_id, "platform": request.platform}
        )
        return feed

    async def list_feeds(self, property_id: int) -> list[CalendarImport]:
        stmt = (
            select(CalendarImport)
            .where(CalendarImport.property_id == property_id, CalendarImport.is_disabled.is_(False))
            .order_by(CalendarImport.id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def _fetch(self, url: str) -> bytes:
        if self._client is not None:
            response = await self._client.get(url, timeout=settings.calendar_fetch_timeout_seconds)
        else:
            async with httpx.AsyncClient(
                timeout=settings.calendar_fetch_timeout_seconds,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.content

    async def import_feed(self, feed: CalendarImport) -> int:
        """
        Fetch one feed and block the nights of each of its events.

        The feed's sync status records the outcome; errors are stored on the
        feed rather than raised. Returns the number of nights written.
        """
        feed.sync_status = SyncStatus.RUNNING
        await self.db.commit()

        try:
            ranges = parse_events(await self._fetch(feed.feed_url))
        except (httpx.HTTPError, ValueError) as e:
            feed.sync_status = SyncStatus.ERROR
            feed.sync_message = str(e)[:500]
            await self.db.commit()
            MetricsCollector.record_calendar_import("error")
            logger.warning(
                "Calendar import failed",
                extra={"feed_id": feed.id, "property_id": feed.property_id, "error": str(e)}
            )
            return 0

        reason = feed.platform or "external"
        blocked = 0
        for date_range in ranges:
            blocked += await self.availability.block_dates(feed.property_id, date_range, reason)

        feed.sync_status = SyncStatus.SUCCESS
        feed.sync_message = None
        feed.last_synced = datetime.utcnow()
        await self.db.commit()
        MetricsCollector.record_calendar_import("success")

        logger.info(
            "Calendar import completed",
            extra={
                "feed_id": feed.id,
                "property_id": feed.property_id,
                "events": len(ranges),
                "nights_blocked": blocked,
            }
        )
        return blocked

    async def sync_property(self, property_id: int) -> list[CalendarImport]:
        """
        Import every active feed of a property.

        Raises:
            NotFoundError: If the property does not exist
        """
        if await self.db.get(Property, property_id) is None:
            raise NotFoundError(resource_type="property", resource_id=str(property_id))

        feeds = await self.list_feeds(property_id)
        for feed in feeds:
            await self.import_feed(feed)
        return feeds

    async def sync_all(self) -> int:
        """Import every active feed; returns the number of feeds processed."""
        stmt = select(CalendarImport).where(CalendarImport.is_disabled.is_(False)).order_by(CalendarImport.id)
        feeds = (await self.db.execute(stmt)).scalars().all()
        for feed in feeds:
            await self.import_feed(feed)
        return len(feeds)
