"""Service layer package."""

from .availability_service import AvailabilityChecker
from .booking_service import BookingService
from .calendar_sync_service import CalendarSyncService
from .cohost_service import CohostService, CohostSplitCalculator
from .idempotency_service import IdempotencyService
from .notification_service import NotificationService
from .payment_plan_service import PaymentPlanScheduler
from .pricing_service import PricingEngine
from .property_service import PropertyService
from .scheduler_service import JobScheduler
from .transfer_service import TransferService

__all__ = [
    "AvailabilityChecker",
    "BookingService",
    "CalendarSyncService",
    "CohostService",
    "CohostSplitCalculator",
    "IdempotencyService",
    "JobScheduler",
    "NotificationService",
    "PaymentPlanScheduler",
    "PricingEngine",
    "PropertyService",
    "TransferService",
]
