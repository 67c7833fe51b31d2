"""Pricing-related Pydantic schemas."""

import datetime
from datetime import date
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class DailyRate(BaseModel):
    """Rate charged for a single night."""

    date: datetime.date = Field(..., description="Night of stay (ISO 8601)")
    rate: Decimal = Field(..., ge=0, description="Nightly rate")


class LOSDiscountTier(BaseModel):
    """Length-of-stay discount tier."""

    min_nights: int = Field(..., ge=1, description="Minimum nights to qualify")
    discount: Decimal = Field(..., ge=0, le=1, description="Discount fraction, e.g. 0.10 for 10%")

    class Config:
        from_attributes = True


class PricingBreakdown(BaseModel):
    """Full price quote for a stay."""

    nights: int = Field(..., ge=1, description="Number of nights")
    nightly_rate: Decimal = Field(..., description="Average nightly rate")
    nightly_subtotal: Decimal = Field(..., description="Sum of nightly rates before discount")
    los_discount: Decimal = Field(..., description="Length-of-stay discount amount")
    los_discount_rate: Decimal = Field(..., description="Applied length-of-stay discount fraction")
    discounted_subtotal: Decimal = Field(..., description="Nightly subtotal after the length-of-stay discount")
    cleaning_fee: Decimal = Field(..., description="Cleaning fee")
    security_deposit: Decimal = Field(..., description="Refundable security deposit")
    taxes: Decimal = Field(..., description="Taxes on the discounted subtotal")
    tax_rate: Decimal = Field(..., description="Applied tax rate")
    total: Decimal = Field(..., description="Amount charged to the guest")
    daily_breakdown: List[DailyRate] = Field(..., description="Rate for each night")


class QuoteRequest(BaseModel):
    """Request schema for a price quote."""

    property_id: int = Field(..., description="Property to quote")
    check_in: date = Field(..., description="Arrival date (ISO 8601)")
    check_out: date = Field(..., description="Departure date (ISO 8601)")
    guests: int = Field(1, ge=1, le=50, description="Number of guests")


class QuoteResponse(BaseModel):
    """Price quote response schema."""

    property_id: int = Field(..., description="Quoted property")
    check_in: date = Field(..., description="Arrival date")
    check_out: date = Field(..., description="Departure date")
    guests: int = Field(..., description="Number of guests")
    currency: str = Field(..., description="Currency code")
    available: bool = Field(..., description="Whether the dates are currently free")
    pricing: PricingBreakdown = Field(..., description="Price breakdown")
