"""Co-host Pydantic schemas."""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SplitType(str, Enum):
    """Co-host split type enumeration."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Cohost(BaseModel):
    """Co-host response schema."""

    id: int = Field(..., description="Unique co-host ID")
    property_id: int = Field(..., description="Property the co-host shares")
    display_name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Contact email")
    split_type: SplitType = Field(..., description="Percentage of the base or fixed amount")
    split_value: Decimal = Field(..., description="Fraction in [0, 1] or a fixed amount")
    account_ref: Optional[str] = Field(None, description="Connected payout account")
    is_active: bool = Field(True, description="Whether the co-host receives transfers")

    class Config:
        from_attributes = True


class AddCohostRequest(BaseModel):
    """Request schema for adding a co-host."""

    property_id: int = Field(..., description="Property")
    split_type: SplitType = Field(SplitType.PERCENTAGE, description="Split type")
    split_value: Decimal = Field(..., description="Fraction in [0, 1] for percentage, amount for fixed")
    account_ref: Optional[str] = Field(None, max_length=100, description="Connected payout account")
    display_name: Optional[str] = Field(None, max_length=200, description="Display name")
    email: Optional[str] = Field(None, max_length=200, description="Contact email")


class RemoveCohostRequest(BaseModel):
    """Request schema for removing a co-host."""

    cohost_id: int = Field(..., description="Co-host to deactivate")


class SplitRequest(BaseModel):
    """Request schema for computing a booking's co-host splits."""

    booking_id: int = Field(..., description="Booking")


class CohostSplit(BaseModel):
    """Transfer amount owed to one co-host."""

    cohost_id: int = Field(..., description="Co-host")
    account_ref: Optional[str] = Field(None, description="Payout account")
    amount: Decimal = Field(..., description="Transfer amount")


class SplitResponse(BaseModel):
    """Co-host split response schema."""

    booking_id: int = Field(..., description="Booking")
    transferable_base: Decimal = Field(..., description="Booking total net of the security deposit")
    splits: List[CohostSplit] = Field(..., description="Per co-host amounts")


class ListCohostsRequest(BaseModel):
    """Request schema for listing a property's co-hosts."""

    property_id: int = Field(..., description="Property")
    include_inactive: bool = Field(False, description="Also return deactivated co-hosts")


class CohostListResponse(BaseModel):
    """Co-host list response schema."""

    property_id: int = Field(..., description="Property")
    cohosts: List[Cohost] = Field(..., description="Co-hosts ordered by ID")
