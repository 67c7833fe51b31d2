"""Property and length-of-stay tier model definitions."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .cohost import Cohost


class Property(Base):
    """Rental property with its pricing and payment plan settings."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    max_guests: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Pricing
    nightly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cleaning_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(6, 4), nullable=True)

    # Payment plans
    full_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    two_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    two_deposit_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("50"))
    two_days_before: Mapped[int] = mapped_column(Integer, nullable=False, default=42)
    four_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    four_deposit_min_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("25"))

    # Guest information
    check_in_time: Mapped[str] = mapped_column(String(5), nullable=False, default="15:00")
    check_out_time: Mapped[str] = mapped_column(String(5), nullable=False, default="11:00")
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    door_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    wifi_password: Mapped[str | None] = mapped_column(String(128), nullable=True)
    host_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

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
        CheckConstraint("length(name) > 0", name="ck_property_name_not_empty"),
        CheckConstraint("nightly_rate >= 0", name="ck_property_nightly_rate_non_negative"),
        CheckConstraint("cleaning_fee >= 0", name="ck_property_cleaning_fee_non_negative"),
        CheckConstraint("security_deposit >= 0", name="ck_property_security_deposit_non_negative"),
        CheckConstraint("two_days_before > 0", name="ck_property_two_days_before_positive"),
    )

    # Relationships
    los_discounts: Mapped[list["LOSDiscountTier"]] = relationship(
        "LOSDiscountTier",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="LOSDiscountTier.min_nights",
        lazy="selectin",
    )
    cohosts: Mapped[list["Cohost"]] = relationship(
        "Cohost",
        back_populates="property",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<Property(id={self.id}, name='{self.name}', "
            f"nightly_rate={self.nightly_rate}, tax_rate={self.tax_rate})>"
        )


class LOSDiscountTier(Base):
    """Length-of-stay discount tier for a property."""

    __tablename__ = "los_discount_tiers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    min_nights: Mapped[int] = mapped_column(Integer, nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)

    __table_args__ = (
        CheckConstraint("min_nights >= 1", name="ck_los_tier_min_nights_positive"),
        CheckConstraint("discount >= 0 AND discount <= 1", name="ck_los_tier_discount_fraction"),
        UniqueConstraint("property_id", "min_nights", name="uq_los_tier_property_min_nights"),
    )

    property: Mapped["Property"] = relationship("Property", back_populates="los_discounts")

    def __repr__(self) -> str:
        return (
            f"<LOSDiscountTier(property_id={self.property_id}, "
            f"min_nights={self.min_nights}, discount={self.discount})>"
        )
