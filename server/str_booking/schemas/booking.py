"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from .payment_plan import Installment, PaymentPlan


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking."""

    property_id: int = Field(..., description="Property to book")
    check_in: date = Field(..., description="Arrival date (ISO 8601)")
    check_out: date = Field(..., description="Departure date (ISO 8601)")
    guests: int = Field(1, ge=1, le=50, description="Number of guests")
    guest_name: str = Field(..., min_length=1, max_length=200, description="Guest full name")
    guest_email: EmailStr = Field(..., description="Guest email")
    guest_phone: Optional[str] = Field(None, max_length=32, description="Guest phone in E.164 form")
    payment_plan: PaymentPlan = Field(PaymentPlan.PAY_IN_FULL, description="Chosen payment plan")
    deposit_amount: Optional[Decimal] = Field(
        None, gt=0, description="Requested four-payment deposit; raised to the minimum when lower"
    )
    payment_customer_ref: str = Field(
        ..., min_length=1, max_length=128, description="Gateway customer charged now and for later installments"
    )
    payment_method_ref: str = Field(
        ..., min_length=1, max_length=128, description="Saved gateway payment method of that customer"
    )


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: int = Field(..., description="Booking to cancel")
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: int = Field(..., description="Booking to retrieve")


class Booking(BaseModel):
    """Booking response schema."""

    id: int = Field(..., description="Unique booking ID")
    code: str = Field(..., description="Booking confirmation code")
    property_id: int = Field(..., description="Booked property")
    check_in: date = Field(..., description="Arrival date")
    check_out: date = Field(..., description="Departure date")
    nights: int = Field(..., description="Number of nights")
    guests: int = Field(..., description="Number of guests")
    guest_name: str = Field(..., description="Guest full name")
    guest_email: str = Field(..., description="Guest email")
    guest_phone: Optional[str] = Field(None, description="Guest phone")
    status: BookingStatus = Field(..., description="Booking status")
    payment_plan: PaymentPlan = Field(..., description="Payment plan")
    nightly_subtotal: Decimal = Field(..., description="Sum of nightly rates")
    los_discount: Decimal = Field(..., description="Length-of-stay discount amount")
    cleaning_fee: Decimal = Field(..., description="Cleaning fee")
    security_deposit: Decimal = Field(..., description="Security deposit")
    taxes: Decimal = Field(..., description="Taxes")
    total: Decimal = Field(..., description="Booking total")
    installments: List[Installment] = Field(..., description="Installment schedule")
    transfers_processed: bool = Field(..., description="Whether co-host transfers completed")
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")

    class Config:
        from_attributes = True
