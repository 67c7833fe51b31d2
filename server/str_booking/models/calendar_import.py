"""External iCal feed subscription model definition."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from ..schemas.calendar import SyncStatus


class CalendarImport(Base):
    """iCal feed whose events block dates on a property."""

    __tablename__ = "calendar_imports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    feed_url: Mapped[str] = mapped_column(Text, nullable=False)
    platform: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sync_status: Mapped[SyncStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SyncStatus.PENDING,
        index=True
    )
    sync_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_synced: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        server_onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(feed_url) > 0", name="ck_calendar_import_url_not_empty"),
        CheckConstraint(
            "sync_status IN ('pending', 'running', 'success', 'error')",
            name="ck_calendar_import_status_valid"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CalendarImport(id={self.id}, property_id={self.property_id}, "
            f"platform='{self.platform}', sync_status={self.sync_status})>"
        )
