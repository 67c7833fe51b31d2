"""Per-night availability model definition."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from ..schemas.availability import AvailabilityStatus


class AvailabilityDay(Base):
    """
    One property night that is booked, blocked, or carries a rate override.

    Nights without a row are available at the base rate.
    """

    __tablename__ = "availability"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[AvailabilityStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AvailabilityStatus.AVAILABLE
    )
    price_override: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    booking_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    block_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)

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
        UniqueConstraint("property_id", "date", name="uq_availability_property_date"),
        Index("ix_availability_property_status", "property_id", "status"),
        CheckConstraint(
            "status IN ('available', 'booked', 'blocked')",
            name="ck_availability_status_valid"
        ),
        CheckConstraint(
            "price_override IS NULL OR price_override >= 0",
            name="ck_availability_price_override_non_negative"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityDay(property_id={self.property_id}, date={self.date}, "
            f"status={self.status}, booking_id={self.booking_id})>"
        )
