"""Background workers for the booking system."""

from .calendar_sync_worker import CalendarSyncWorker
from .job_worker import JobWorker

__all__ = ["CalendarSyncWorker", "JobWorker"]
