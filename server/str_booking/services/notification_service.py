"""Guest notifications: templates, the per-booking schedule, and delivery."""

import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..gateways.base import GatewayError
from ..models.booking import Booking
from ..models.scheduled_job import JobKind, ScheduledJob
from ..schemas.booking import BookingStatus
from .scheduler_service import JobScheduler

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    """Guest notification enumeration."""
    BOOKING_CONFIRMATION = "booking_confirmation"
    PRE_ARRIVAL = "pre_arrival"
    CHECK_IN_INSTRUCTIONS = "check_in_instructions"
    CHECK_OUT_REMINDER = "check_out_reminder"
    REVIEW_REQUEST = "review_request"


class Channel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


CHANNELS: dict[NotificationType, tuple[Channel, ...]] = {
    NotificationType.BOOKING_CONFIRMATION: (Channel.EMAIL, Channel.SMS),
    NotificationType.PRE_ARRIVAL: (Channel.EMAIL, Channel.SMS),
    NotificationType.CHECK_IN_INSTRUCTIONS: (Channel.SMS,),
    NotificationType.CHECK_OUT_REMINDER: (Channel.EMAIL, Channel.SMS),
    NotificationType.REVIEW_REQUEST: (Channel.EMAIL,),
}

EMAIL_SUBJECTS: dict[NotificationType, str] = {
    NotificationType.BOOKING_CONFIRMATION: "Your booking is confirmed!",
    NotificationType.PRE_ARRIVAL: "Your stay is coming up - here's what to know",
    NotificationType.CHECK_IN_INSTRUCTIONS: "Check-in instructions for today",
    NotificationType.CHECK_OUT_REMINDER: "Check-out reminder",
    NotificationType.REVIEW_REQUEST: "How was your stay?",
}

EMAIL_BODIES: dict[NotificationType, str] = {
    NotificationType.BOOKING_CONFIRMATION: (
        "Hi {guest_name},\n\n"
        "Your booking #{booking_id} at {property_name} is confirmed.\n"
        "Check-in: {check_in_date} from {check_in_time}\n"
        "Check-out: {check_out_date} by {check_out_time}\n"
        "Nights: {nights}\n"
        "Total: {total}\n\n"
        "We look forward to hosting you."
    ),
    NotificationType.PRE_ARRIVAL: (
        "Hi {guest_name},\n\n"
        "Your stay at {property_name} starts {check_in_date}. "
        "Check-in is from {check_in_time} at {address}.\n"
        "We'll send check-in details the morning of arrival."
    ),
    NotificationType.CHECK_IN_INSTRUCTIONS: (
        "Welcome to {property_name}!\n\n"
        "Address: {address}\n"
        "Door code: {door_code}\n"
        "WiFi: {wifi_password}\n"
        "Questions? Call {host_phone}"
    ),
    NotificationType.CHECK_OUT_REMINDER: (
        "Hi {guest_name},\n\n"
        "Just a reminder that check-out is {check_out_date} at {check_out_time}. "
        "Thanks for staying at {property_name}!"
    ),
    NotificationType.REVIEW_REQUEST: (
        "Hi {guest_name},\n\n"
        "Thanks for staying at {property_name}. "
        "We'd love to hear how your stay went."
    ),
}

SMS_TEMPLATES: dict[NotificationType, str] = {
    NotificationType.BOOKING_CONFIRMATION: (
        "Hi {guest_name}, your booking at {property_name} is confirmed! "
        "Check-in: {check_in_date}. Reply STOP to unsubscribe."
    ),
    NotificationType.PRE_ARRIVAL: (
        "Hi {guest_name}, your stay at {property_name} starts {check_in_date}. "
        "We'll send check-in details the morning of arrival!"
    ),
    NotificationType.CHECK_IN_INSTRUCTIONS: (
        "Welcome to {property_name}! Door code: {door_code}. "
        "WiFi: {wifi_password}. Questions? Call {host_phone}"
    ),
    NotificationType.CHECK_OUT_REMINDER: (
        "Hi {guest_name}, just a reminder that check-out is tomorrow at {check_out_time}. "
        "Thanks for staying!"
    ),
}

CHECK_IN_INSTRUCTIONS_AT = time(9, 0)


class _Placeholders(dict):
    """Leaves unknown ``{placeholders}`` in place."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render(template: str, context: dict[str, str]) -> str:
    return template.format_map(_Placeholders(context))


def build_context(booking: Booking) -> dict[str, str]:
    """Placeholder values for one booking."""
    prop = booking.property
    return {
        "guest_name": booking.guest_name,
        "guest_email": booking.guest_email,
        "property_name": prop.name,
        "check_in_date": booking.check_in.strftime("%B %d, %Y"),
        "check_out_date": booking.check_out.strftime("%B %d, %Y"),
        "check_in_time": prop.check_in_time,
        "check_out_time": prop.check_out_time,
        "door_code": prop.door_code or "",
        "wifi_password": prop.wifi_password or "",
        "host_phone": prop.host_phone or "",
        "address": prop.address or "",
        "total": f"{booking.total:.2f}",
        "nights": str(booking.nights),
        "booking_id": str(booking.id),
    }


def _at(day: date, hhmm: str) -> datetime:
    hours, minutes = (int(part) for part in hhmm.split(":"))
    return datetime.combine(day, time(hours, minutes))


def notification_times(
    check_in: date,
    check_out: date,
    check_in_time: str = "15:00",
    check_out_time: str = "11:00",
) -> dict[NotificationType, datetime]:
    """
    When each post-booking notification goes out.

    Times are naive and read in the server clock, like every other timestamp
    the service stores.
    """
    arrival = _at(check_in, check_in_time)
    departure = _at(check_out, check_out_time)
    return {
        NotificationType.PRE_ARRIVAL: arrival - timedelta(days=3),
        NotificationType.CHECK_IN_INSTRUCTIONS: datetime.combine(check_in, CHECK_IN_INSTRUCTIONS_AT),
        NotificationType.CHECK_OUT_REMINDER: departure - timedelta(hours=18),
        NotificationType.REVIEW_REQUEST: departure + timedelta(days=2),
    }


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, body: str) -> Optional[str]:
        ...


class SMSSender(Protocol):
    async def send(self, phone: str, message: str) -> str:
        ...


class LoggingEmailSender:
    """
    Writes the message to the application log instead of delivering it.

    Selected with ``EMAIL_PROVIDER=log`` for tests and local runs.
    """

    def __init__(self, from_name: str, from_address: str):
        self.from_name = from_name
        self.from_address = from_address

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info(
            "Email logged, not delivered",
            extra={
                "from": f"{self.from_name} <{self.from_address}>",
                "to": to,
                "subject": subject,
                "body_length": len(body),
            }
        )


class NotificationService:
    """Service for scheduling and delivering guest notifications."""

    def __init__(
        self,
        db: AsyncSession,
        email_sender: EmailSender,
        sms_sender: Optional[SMSSender] = None,
    ):
        self.db = db
        self.email_sender = email_sender
        self.sms_sender = sms_sender
        self.scheduler = JobScheduler(db)

    async def schedule_sequence(self, booking: Booking, now: Optional[datetime] = None) -> list[ScheduledJob]:
        """
        Queue the confirmation immediately and the rest of the sequence at their times.

        Notifications whose time has already passed are not queued. The caller commits.
        """
        now = now or datetime.utcnow()
        prop = booking.property
        jobs = [
            await self.scheduler.schedule(
                JobKind.SEND_NOTIFICATION,
                now,
                {"notification_type": NotificationType.BOOKING_CONFIRMATION.value},
                booking_id=booking.id,
            )
        ]

        times = notification_times(booking.check_in, booking.check_out, prop.check_in_time, prop.check_out_time)
        for notification_type, run_at in times.items():
            if run_at <= now:
                continue
            jobs.append(
                await self.scheduler.schedule(
                    JobKind.SEND_NOTIFICATION,
                    run_at,
                    {"notification_type": notification_type.value},
                    booking_id=booking.id,
                )
            )

        logger.info(
            "Scheduled guest notifications",
            extra={"booking_id": booking.id, "count": len(jobs)}
        )
        return jobs

    async def send(self, booking_id: int, notification_type: NotificationType) -> dict[str, bool]:
        """
        Deliver one notification on each of its channels.

        Returns the per-channel outcome. A channel with no recipient or no
        configured provider is reported as not sent.

        Raises:
            NotFoundError: If the booking does not exist
        """
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

        if booking.status in (BookingStatus.CANCELLED, BookingStatus.REFUNDED):
            logger.info(
                "Skipping notification for cancelled booking",
                extra={"booking_id": booking_id, "notification_type": notification_type.value}
            )
            return {}

        context = build_context(booking)
        results: dict[str, bool] = {}

        for channel in CHANNELS[notification_type]:
            if channel == Channel.EMAIL:
                results[channel.value] = await self._send_email(booking, notification_type, context)
            else:
                results[channel.value] = await self._send_sms(booking, notification_type, context)

        logger.info(
            "Notification delivered",
            extra={
                "booking_id": booking_id,
                "notification_type": notification_type.value,
                "results": results,
            }
        )
        return results

    async def _send_email(self, booking: Booking, notification_type: NotificationType, context: dict[str, str]) -> bool:
        if not booking.guest_email:
            return False
        try:
            await self.email_sender.send(
                booking.guest_email,
                EMAIL_SUBJECTS[notification_type],
                render(EMAIL_BODIES[notification_type], context),
            )
        except GatewayError as e:
            logger.warning(
                "Email delivery failed",
                extra={
                    "booking_id": booking.id,
                    "notification_type": notification_type.value,
                    "error": e.message,
                }
            )
            return False
        return True

    async def _send_sms(self, booking: Booking, notification_type: NotificationType, context: dict[str, str]) -> bool:
        if self.sms_sender is None or not booking.guest_phone:
            return False
        try:
            await self.sms_sender.send(booking.guest_phone, render(SMS_TEMPLATES[notification_type], context))
        except GatewayError as e:
            logger.warning(
                "SMS delivery failed",
                extra={
                    "booking_id": booking.id,
                    "notification_type": notification_type.value,
                    "error": e.message,
                }
            )
            return False
        return True
