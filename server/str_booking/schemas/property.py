"""Property-related Pydantic schemas."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .pricing import LOSDiscountTier

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class PlanConfig(BaseModel):
    """Payment plans a property offers."""

    full_enabled: bool = Field(True, description="Offer pay-in-full")
    two_enabled: bool = Field(False, description="Offer the two-payment plan")
    two_deposit_pct: Decimal = Field(Decimal("50"), gt=0, le=100, description="Two-payment deposit percent")
    two_days_before: int = Field(42, ge=1, description="Days before check-in the second payment is due")
    four_enabled: bool = Field(False, description="Offer the four-payment plan")
    four_deposit_min_pct: Decimal = Field(Decimal("25"), gt=0, le=100, description="Four-payment minimum deposit percent")

    class Config:
        from_attributes = True


class PropertySettings(BaseModel):
    """Everything the pricing and plan engines read about a property."""

    id: int = Field(..., description="Property ID")
    nightly_rate: Decimal = Field(..., ge=0, description="Base nightly rate")
    cleaning_fee: Decimal = Field(Decimal("0"), ge=0, description="Cleaning fee")
    security_deposit: Decimal = Field(Decimal("0"), ge=0, description="Refundable security deposit")
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1, description="Property tax rate override")
    los_discounts: List[LOSDiscountTier] = Field(default_factory=list, description="Length-of-stay tiers")
    plan_config: PlanConfig = Field(default_factory=PlanConfig, description="Payment plan configuration")
    check_in_time: str = Field("15:00", pattern=TIME_PATTERN, description="Check-in time (HH:MM)")
    check_out_time: str = Field("11:00", pattern=TIME_PATTERN, description="Check-out time (HH:MM)")

    class Config:
        from_attributes = True


class CreatePropertyRequest(BaseModel):
    """Request schema for creating a property."""

    name: str = Field(..., min_length=1, max_length=200, description="Property name")
    nightly_rate: Decimal = Field(..., ge=0, description="Base nightly rate")
    cleaning_fee: Decimal = Field(Decimal("0"), ge=0, description="Cleaning fee")
    security_deposit: Decimal = Field(Decimal("0"), ge=0, description="Refundable security deposit")
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1, description="Tax rate override; global default when unset")
    max_guests: int = Field(1, ge=1, le=50, description="Maximum guests")
    los_discounts: List[LOSDiscountTier] = Field(default_factory=list, description="Length-of-stay tiers")
    plan_config: PlanConfig = Field(default_factory=PlanConfig, description="Payment plan configuration")
    check_in_time: str = Field("15:00", pattern=TIME_PATTERN, description="Check-in time (HH:MM)")
    check_out_time: str = Field("11:00", pattern=TIME_PATTERN, description="Check-out time (HH:MM)")
    address: Optional[str] = Field(None, max_length=500, description="Street address")
    door_code: Optional[str] = Field(None, max_length=64, description="Door code sent with check-in instructions")
    wifi_password: Optional[str] = Field(None, max_length=128, description="WiFi password")
    host_phone: Optional[str] = Field(None, max_length=32, description="Host contact phone")

    @field_validator("los_discounts")
    @classmethod
    def validate_tiers(cls, v: List[LOSDiscountTier]) -> List[LOSDiscountTier]:
        """Reject duplicate minimum nights and longer tiers with a smaller discount."""
        seen = [tier.min_nights for tier in v]
        if len(seen) != len(set(seen)):
            raise ValueError("Length-of-stay tiers must have distinct min_nights")
        ordered = sorted(v, key=lambda tier: tier.min_nights)
        for shorter, longer in zip(ordered, ordered[1:]):
            if longer.discount < shorter.discount:
                raise ValueError(
                    f"The {longer.min_nights}-night tier discounts less than the {shorter.min_nights}-night tier"
                )
        return v


class GetPropertyRequest(BaseModel):
    """Request schema for getting a property."""

    property_id: int = Field(..., description="Property to retrieve")


class Property(BaseModel):
    """Property response schema."""

    id: int = Field(..., description="Unique property ID")
    name: str = Field(..., description="Property name")
    max_guests: int = Field(..., description="Maximum guests")
    settings: PropertySettings = Field(..., description="Pricing and plan settings")
    address: Optional[str] = Field(None, description="Street address")
