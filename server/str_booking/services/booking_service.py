"""Booking service for business logic operations."""

import logging
import secrets
import string
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import advisory_lock
from ..core.exceptions import (
    ConflictError,
    DatesUnavailableError,
    NotFoundError,
    PlanNotEligibleError,
    ValidationError,
)
from ..core.locks import property_locks
from ..core.money import ZERO
from ..core.observability import MetricsCollector
from ..models.booking import Booking, PaymentInstallment
from ..models.scheduled_job import JobKind
from ..schemas.booking import BookingStatus, CancelBookingRequest, CreateBookingRequest
from ..schemas.common import DateRange
from ..schemas.payment_plan import ChargeResult, InstallmentStatus, ScheduleResponse
from .notification_service import NotificationService
from .payment_plan_service import compute_deposit
from .ports import StoredPaymentMethod
from .repositories import SqlPropertySettingsReader, property_to_settings
from .scheduler_service import JobScheduler

if TYPE_CHECKING:
    from ..engine import BookingEngine

logger = logging.getLogger(__name__)

# Bookings in these statuses can no longer be cancelled
FINAL_STATUSES = (BookingStatus.CHECKED_OUT, BookingStatus.REFUNDED)


class BookingService:
    """Service for the booking lifecycle around the engine components."""

    def __init__(self, db: AsyncSession, engine: "BookingEngine", notifications: NotificationService):
        self.db = db
        self.engine = engine
        self.notifications = notifications
        self.properties = SqlPropertySettingsReader(db)
        self.scheduler = JobScheduler(db)

    def _generate_booking_code(self, length: int = 8) -> str:
        """Generate a random booking confirmation code."""
        alphabet = string.ascii_uppercase + string.digits
        return ''.join(secrets.choice(alphabet) for _ in range(length))

    async def create_booking(
        self,
        request: CreateBookingRequest,
        idempotency_key: str,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Create a confirmed booking with its installment schedule.

        The property is locked while availability is checked and the nights
        are marked booked, so two requests for overlapping dates cannot both
        succeed. Installment #1 is charged off-session on the guest's saved
        payment method before anything is stored; a decline leaves no booking
        and the nights free. Later installments and the guest notifications are
        queued as jobs.

        Args:
            request: Booking creation request
            idempotency_key: Idempotency key for this operation
            today: Booking date, defaults to the current date
            now: Scheduling clock, defaults to the current UTC time

        Returns:
            Created booking entity

        Raises:
            InvalidDateRangeError: If check-out is not after check-in
            NotFoundError: If the property does not exist
            ValidationError: If the party is larger than the property allows
            PlanNotEligibleError: If the chosen plan is not offered for this check-in
            DatesUnavailableError: If any night is booked or blocked
            GatewayChargeFailedError: If the up-front charge is declined
        """
        date_range = DateRange.of(request.check_in, request.check_out)
        today = today or date.today()
        now = now or datetime.utcnow()

        async with property_locks.hold(request.property_id):
            await advisory_lock(self.db, f"property:{request.property_id}")

            prop = await self.properties.get_property(request.property_id)
            if request.guests > prop.max_guests:
                raise ValidationError(
                    detail=f"Property {prop.id} allows at most {prop.max_guests} guests",
                    code="TOO_MANY_GUESTS",
                )

            plans = await self.engine.payment_plans.get_eligible_plans(request.property_id, request.check_in, today=today)
            if request.payment_plan not in plans:
                logger.warning(
                    "Booking rejected - plan not eligible",
                    extra={
                        "property_id": request.property_id,
                        "payment_plan": request.payment_plan.value,
                        "eligible_plans": [plan.value for plan in plans],
                        "idempotency_key": idempotency_key,
                    }
                )
                raise PlanNotEligibleError(request.payment_plan.value, [plan.value for plan in plans])

            if not await self.engine.availability.is_available(request.property_id, date_range):
                logger.warning(
                    "Booking rejected - dates unavailable",
                    extra={
                        "property_id": request.property_id,
                        "check_in": request.check_in.isoformat(),
                        "check_out": request.check_out.isoformat(),
                        "idempotency_key": idempotency_key,
                    }
                )
                raise DatesUnavailableError(request.property_id, request.check_in, request.check_out)

            pricing = await self.engine.pricing.calculate(request.property_id, date_range, request.guests)
            plan_config = property_to_settings(prop).plan_config
            deposit = compute_deposit(request.payment_plan, pricing.total, plan_config, request.deposit_amount)
            schedule = self.engine.payment_plans.create_schedule(
                request.payment_plan,
                deposit,
                pricing.total,
                request.check_in,
                days_before=plan_config.two_days_before,
                today=today,
            )

            upfront = await self.engine.payment_plans.charge_upfront(
                schedule[0],
                StoredPaymentMethod(
                    customer_ref=request.payment_customer_ref,
                    payment_method_ref=request.payment_method_ref,
                ),
                idempotency_key,
                metadata={
                    "property_id": prop.id,
                    "check_in": request.check_in.isoformat(),
                    "check_out": request.check_out.isoformat(),
                },
            )

            booking_code = self._generate_booking_code()
            while await self.get_booking_by_code(booking_code):
                booking_code = self._generate_booking_code()

            booking = Booking(
                code=booking_code,
                property_id=prop.id,
                property=prop,
                check_in=request.check_in,
                check_out=request.check_out,
                guests=request.guests,
                status=BookingStatus.CONFIRMED,
                guest_name=request.guest_name,
                guest_email=str(request.guest_email),
                guest_phone=request.guest_phone,
                payment_plan=request.payment_plan,
                nightly_subtotal=pricing.nightly_subtotal,
                los_discount=pricing.los_discount,
                cleaning_fee=pricing.cleaning_fee,
                security_deposit=pricing.security_deposit,
                taxes=pricing.taxes,
                total=pricing.total,
                payment_customer_ref=request.payment_customer_ref,
                payment_method_ref=request.payment_method_ref,
                transfers_processed=False,
                installments=[
                    PaymentInstallment(
                        number=installment.number,
                        amount=installment.amount,
                        due_date=installment.due_date,
                        status=installment.status,
                        transaction_id=upfront.transaction_id if upfront and installment.number == 1 else None,
                        attempts=1 if upfront and installment.number == 1 else 0,
                        paid_at=now if installment.status == InstallmentStatus.PAID else None,
                    )
                    for installment in schedule
                ],
            )
            self.db.add(booking)
            await self.db.flush()

            await self.engine.availability.mark_booked(request.property_id, date_range, booking.id)
            await self._schedule_jobs(booking, today, now)

            await self.db.commit()

            await self.db.refresh(booking)

        MetricsCollector.record_booking_created(request.payment_plan.value)

        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": booking.id,
                "booking_code": booking.code,
                "property_id": booking.property_id,
                "check_in": booking.check_in.isoformat(),
                "check_out": booking.check_out.isoformat(),
                "payment_plan": request.payment_plan.value,
                "total": str(booking.total),
                "idempotency_key": idempotency_key,
            }
        )

        return booking

    async def _schedule_jobs(self, booking: Booking, today: date, now: datetime) -> None:
        """Queue installment charges, guest notifications and the co-host payout."""
        for installment in booking.installments:
            if installment.status != InstallmentStatus.PENDING:
                continue
            # An installment already due is charged on the next worker poll
            run_at = now if installment.due_date <= today else datetime.combine(installment.due_date, time.min)
            await self.scheduler.schedule(
                JobKind.CHARGE_INSTALLMENT,
                run_at,
                {"installment_number": installment.number},
                booking_id=booking.id,
            )

        await self.notifications.schedule_sequence(booking, now=now)

        check_in_hour, check_in_minute = (int(part) for part in booking.property.check_in_time.split(":"))
        transfer_at = datetime.combine(booking.check_in, time(check_in_hour, check_in_minute)) + timedelta(
            hours=settings.transfer_delay_hours
        )
        await self.scheduler.schedule(JobKind.PROCESS_TRANSFERS, transfer_at, {}, booking_id=booking.id)

    async def cancel_booking(self, request: CancelBookingRequest) -> Booking:
        """
        Cancel a booking, release its nights and drop its pending jobs.

        Nights blocked by a calendar import stay blocked. Paid installments are
        left as they are.

        Raises:
            NotFoundError: If booking not found
            ConflictError: If the stay is already over
        """
        booking = await self.get_booking_by_id_or_raise(request.booking_id)

        if booking.status == BookingStatus.CANCELLED:
            logger.info(
                "Booking already cancelled - returning existing booking",
                extra={"booking_id": request.booking_id}
            )
            return booking

        if booking.status in FINAL_STATUSES:
            raise ConflictError(
                detail=f"Booking {booking.id} cannot be cancelled (status: {booking.status})",
                conflicting_resource={"booking_id": booking.id, "status": booking.status},
            )

        async with property_locks.hold(booking.property_id):
            await advisory_lock(self.db, f"property:{booking.property_id}")

            released = await self.engine.availability.mark_available(
                booking.property_id,
                DateRange(check_in=booking.check_in, check_out=booking.check_out),
            )
            cancelled_jobs = await self.scheduler.cancel_for_booking(booking.id)

            booking.status = BookingStatus.CANCELLED
            booking.cancellation_reason = request.reason
            booking.cancelled_at = datetime.utcnow()

            await self.db.commit()

        await self.db.refresh(booking)
        MetricsCollector.record_booking_cancelled()

        logger.info(
            "Booking cancelled successfully",
            extra={
                "booking_id": booking.id,
                "booking_code": booking.code,
                "nights_released": released,
                "jobs_cancelled": cancelled_jobs,
            }
        )

        return booking

    async def charge_installment(self, booking_id: int, number: int) -> ChargeResult:
        """
        Charge one installment of a live booking.

        Raises:
            NotFoundError: If the booking or installment does not exist
            ConflictError: If the booking is cancelled
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        if booking.status in (BookingStatus.CANCELLED, BookingStatus.REFUNDED):
            raise ConflictError(
                detail=f"Booking {booking_id} is {booking.status}; installments are no longer charged",
                conflicting_resource={"booking_id": booking_id, "status": booking.status},
            )

        result = await self.engine.payment_plans.charge_installment(booking_id, number)
        MetricsCollector.record_installment_charge(result.outcome.value)
        return result

    async def get_schedule(self, booking_id: int) -> ScheduleResponse:
        """Stored installments of a booking with paid and outstanding totals."""
        booking = await self.get_booking_by_id_or_raise(booking_id)
        installments = await self.engine.payment_plans.get_schedule(booking_id)

        paid = sum((i.amount for i in installments if i.status == InstallmentStatus.PAID), ZERO)
        return ScheduleResponse(
            booking_id=booking_id,
            payment_plan=booking.payment_plan,
            total=booking.total,
            paid=paid,
            balance_due=sum((i.amount for i in installments if i.status != InstallmentStatus.PAID), ZERO),
            installments=installments,
        )

    async def get_booking_by_id(self, booking_id: int) -> Booking | None:
        """Get booking by ID."""
        stmt = select(Booking).where(Booking.id == booking_id)
        result = await self.db.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def get_booking_by_id_or_raise(self, booking_id: int) -> Booking:
        """Get booking by ID or raise NotFoundError."""
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning(
                "Booking not found",
                extra={"booking_id": booking_id}
            )
            raise NotFoundError(
                resource_type="booking",
                resource_id=str(booking_id)
            )
        return booking

    async def get_booking_by_code(self, code: str) -> Booking | None:
        """Get booking by confirmation code."""
        stmt = select(Booking).where(Booking.code == code)
        result = await self.db.execute(stmt)
        return result.unique().scalar_one_or_none()
