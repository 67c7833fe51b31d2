"""Models module exporting all database models."""

from .availability import AvailabilityDay
from .booking import OCCUPYING_STATUSES, Booking, PaymentInstallment
from .calendar_import import CalendarImport
from .cohost import Cohost, CohostTransfer
from .idempotency import IdempotencyRecord
from .property import LOSDiscountTier, Property
from .scheduled_job import JobKind, JobStatus, ScheduledJob

__all__ = [
    # Property entities
    "Property",
    "LOSDiscountTier",
    "AvailabilityDay",

    # Booking entities
    "Booking",
    "PaymentInstallment",
    "OCCUPYING_STATUSES",

    # Co-host entities
    "Cohost",
    "CohostTransfer",

    # Calendar sync entity
    "CalendarImport",

    # Scheduled job entity
    "ScheduledJob",
    "JobKind",
    "JobStatus",

    # Idempotency entity
    "IdempotencyRecord",
]
