"""Background worker that imports external iCal feeds."""

import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import async_session_factory
from ..core.dependencies import build_booking_engine, get_payment_gateway
from ..services.calendar_sync_service import CalendarSyncService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class CalendarSyncWorker(BaseWorker):
    """Imports every active feed and blocks the nights other platforms have booked."""

    def __init__(self, interval_seconds: int = 3600, session_factory: async_sessionmaker = async_session_factory):
        super().__init__(name="CalendarSync", interval_seconds=interval_seconds)
        self.session_factory = session_factory

    async def process(self) -> None:
        async with self.session_factory() as db:
            engine = build_booking_engine(db, get_payment_gateway())
            synced = await CalendarSyncService(db, engine.availability).sync_all()

        if synced:
            logger.info(
                f"Synced {synced} calendar feeds",
                extra={"feed_count": synced, "worker": self.name}
            )
