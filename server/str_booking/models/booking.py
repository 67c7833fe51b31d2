"""Booking and PaymentInstallment model definitions."""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..schemas.booking import BookingStatus
from ..schemas.payment_plan import InstallmentStatus, PaymentPlan

if TYPE_CHECKING:
    from .property import Property


# Statuses whose stays hold their dates
OCCUPYING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
    BookingStatus.CHECKED_OUT,
)


class Booking(Base):
    """Booking entity representing a guest stay at a property."""

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    property_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False
    )

    # Stay
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    guests: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.CONFIRMED,
        index=True
    )

    # Guest
    guest_name: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Pricing snapshot at booking time
    payment_plan: Mapped[PaymentPlan] = mapped_column(String(20), nullable=False)
    nightly_subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    los_discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    cleaning_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    taxes: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Stored gateway references for off-session installment charges
    payment_customer_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payment_method_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)

    transfers_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

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
        CheckConstraint("check_out > check_in", name="ck_booking_dates_ordered"),
        CheckConstraint("guests > 0", name="ck_booking_guests_positive"),
        CheckConstraint("total >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("length(guest_name) > 0", name="ck_booking_guest_name_not_empty"),
        CheckConstraint("length(code) > 0", name="ck_booking_code_not_empty"),
        Index("ix_bookings_property_dates", "property_id", "check_in", "check_out"),
    )

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    # Relationships
    property: Mapped["Property"] = relationship("Property", lazy="joined")
    installments: Mapped[list["PaymentInstallment"]] = relationship(
        "PaymentInstallment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="PaymentInstallment.number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, code='{self.code}', property_id={self.property_id}, "
            f"check_in={self.check_in}, check_out={self.check_out}, status={self.status})>"
        )


class PaymentInstallment(Base):
    """One scheduled payment of a booking."""

    __tablename__ = "payment_installments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[InstallmentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InstallmentStatus.PENDING
    )
    transaction_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    failure_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

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
        UniqueConstraint("booking_id", "number", name="uq_installment_booking_number"),
        CheckConstraint("number >= 1", name="ck_installment_number_positive"),
        CheckConstraint("amount >= 0", name="ck_installment_amount_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'failed')",
            name="ck_installment_status_valid"
        ),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="installments")

    def __repr__(self) -> str:
        return (
            f"<PaymentInstallment(booking_id={self.booking_id}, number={self.number}, "
            f"amount={self.amount}, due_date={self.due_date}, status={self.status})>"
        )
