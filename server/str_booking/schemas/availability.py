"""Availability-related Pydantic schemas."""

import datetime
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class AvailabilityStatus(str, Enum):
    """Per-night availability status."""
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"


class AvailabilityDay(BaseModel):
    """Availability row for one property night."""

    date: datetime.date = Field(..., description="Night (ISO 8601)")
    status: AvailabilityStatus = Field(..., description="Availability status")
    price_override: Optional[Decimal] = Field(None, description="Rate override for this night")
    booking_id: Optional[int] = Field(None, description="Booking occupying this night")
    block_reason: Optional[str] = Field(None, description="Why the night is blocked, e.g. the import platform")

    class Config:
        from_attributes = True


class CheckAvailabilityRequest(BaseModel):
    """Request schema for an availability check."""

    property_id: int = Field(..., description="Property to check")
    check_in: date = Field(..., description="Arrival date (ISO 8601)")
    check_out: date = Field(..., description="Departure date (ISO 8601)")


class CheckAvailabilityResponse(BaseModel):
    """Availability check response schema."""

    property_id: int = Field(..., description="Checked property")
    check_in: date = Field(..., description="Arrival date")
    check_out: date = Field(..., description="Departure date")
    nights: int = Field(..., description="Number of nights")
    available: bool = Field(..., description="True when every night is free")


class CalendarResponse(BaseModel):
    """Availability window response schema."""

    property_id: int = Field(..., description="Property")
    start: date = Field(..., description="First night in the window")
    end: date = Field(..., description="Day after the last night in the window")
    days: List[AvailabilityDay] = Field(..., description="Stored rows in the window; missing nights are available")
