"""Co-host and co-host transfer model definitions."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..schemas.cohost import SplitType

if TYPE_CHECKING:
    from .property import Property


class Cohost(Base):
    """Co-host who receives a share of each booking at a property."""

    __tablename__ = "cohosts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    account_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    split_type: Mapped[SplitType] = mapped_column(
        String(20),
        nullable=False,
        default=SplitType.PERCENTAGE
    )
    split_value: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

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
        CheckConstraint("split_type IN ('percentage', 'fixed')", name="ck_cohost_split_type_valid"),
        CheckConstraint("split_value >= 0", name="ck_cohost_split_value_non_negative"),
    )

    property: Mapped["Property"] = relationship("Property", back_populates="cohosts")

    def __repr__(self) -> str:
        return (
            f"<Cohost(id={self.id}, property_id={self.property_id}, "
            f"split_type={self.split_type}, split_value={self.split_value}, active={self.is_active})>"
        )


class CohostTransfer(Base):
    """A payout of one co-host's split for one booking."""

    __tablename__ = "cohost_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    cohost_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cohosts.id", ondelete="CASCADE"),
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    transfer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

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
        UniqueConstraint("booking_id", "cohost_id", name="uq_cohost_transfer_booking_cohost"),
        CheckConstraint("amount >= 0", name="ck_cohost_transfer_amount_non_negative"),
        CheckConstraint("status IN ('pending', 'succeeded', 'failed')", name="ck_cohost_transfer_status_valid"),
    )

    def __repr__(self) -> str:
        return (
            f"<CohostTransfer(booking_id={self.booking_id}, cohost_id={self.cohost_id}, "
            f"amount={self.amount}, status={self.status})>"
        )
