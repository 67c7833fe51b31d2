"""Payment plan Pydantic schemas."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PaymentPlan(str, Enum):
    """Payment plan enumeration."""
    PAY_IN_FULL = "pay_in_full"
    TWO_PAYMENT = "two_payment"
    FOUR_PAYMENT = "four_payment"


class InstallmentStatus(str, Enum):
    """Installment status enumeration."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class ChargeOutcome(str, Enum):
    """Result of an off-session installment charge attempt."""
    CHARGED = "charged"
    ALREADY_PROCESSED = "already_processed"
    FAILED = "failed"


class Installment(BaseModel):
    """One scheduled payment of a booking."""

    number: int = Field(..., ge=1, description="1-based installment number")
    amount: Decimal = Field(..., ge=0, description="Amount due")
    due_date: date = Field(..., description="Due date (ISO 8601)")
    status: InstallmentStatus = Field(..., description="Installment status")
    transaction_id: Optional[str] = Field(None, description="Gateway transaction ID once paid")
    failure_message: Optional[str] = Field(None, description="Gateway decline message of the last failed charge")
    attempts: int = Field(0, ge=0, description="Charge attempts recorded so far")

    class Config:
        from_attributes = True


class ChargeResult(BaseModel):
    """Outcome of charging an installment."""

    booking_id: int = Field(..., description="Booking charged")
    installment_number: int = Field(..., description="Installment charged")
    outcome: ChargeOutcome = Field(..., description="Charge outcome")
    amount: Decimal = Field(..., description="Installment amount")
    transaction_id: Optional[str] = Field(None, description="Gateway transaction ID")
    message: Optional[str] = Field(None, description="Gateway failure message")

    @property
    def succeeded(self) -> bool:
        return self.outcome != ChargeOutcome.FAILED


class EligiblePlansRequest(BaseModel):
    """Request schema for listing eligible plans."""

    property_id: int = Field(..., description="Property")
    check_in: date = Field(..., description="Arrival date (ISO 8601)")


class EligiblePlansResponse(BaseModel):
    """Eligible plans response schema."""

    property_id: int = Field(..., description="Property")
    check_in: date = Field(..., description="Arrival date")
    days_until_check_in: int = Field(..., description="Whole days from today to check-in")
    plans: List[PaymentPlan] = Field(..., description="Plans the guest may choose")


class GetScheduleRequest(BaseModel):
    """Request schema for a booking's installment schedule."""

    booking_id: int = Field(..., description="Booking")


class ScheduleResponse(BaseModel):
    """Installment schedule response schema."""

    booking_id: int = Field(..., description="Booking")
    payment_plan: PaymentPlan = Field(..., description="Plan chosen at booking")
    total: Decimal = Field(..., description="Booking total")
    paid: Decimal = Field(..., description="Sum of paid installments")
    balance_due: Decimal = Field(..., description="Sum of unpaid installments")
    installments: List[Installment] = Field(..., description="Installments in order")


class ChargeInstallmentRequest(BaseModel):
    """Request schema for charging an installment."""

    booking_id: int = Field(..., description="Booking")
    installment_number: int = Field(..., ge=1, description="Installment to charge")
