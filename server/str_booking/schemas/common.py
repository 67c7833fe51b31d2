"""Common Pydantic schemas."""

from datetime import date, timedelta
from typing import List, Optional

from pydantic import BaseModel, Field

from ..core.exceptions import InvalidDateRangeError


class DateRange(BaseModel):
    """
    Half-open stay interval ``[check_in, check_out)``.

    The check-out day itself is not occupied. Build ranges with ``of`` so a
    reversed range surfaces as an ``InvalidDateRangeError`` rather than a
    request validation error.
    """

    check_in: date = Field(..., description="Arrival date (ISO 8601)")
    check_out: date = Field(..., description="Departure date (ISO 8601), exclusive")

    @classmethod
    def of(cls, check_in: date, check_out: date) -> "DateRange":
        """Build a range, rejecting a check-out on or before check-in."""
        if check_out <= check_in:
            raise InvalidDateRangeError(check_in, check_out)
        return cls(check_in=check_in, check_out=check_out)

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def dates(self) -> list[date]:
        """Each occupied night in the range."""
        return [self.check_in + timedelta(days=offset) for offset in range(max(self.nights, 0))]

    def overlaps(self, check_in: date, check_out: date) -> bool:
        return check_in < self.check_out and check_out > self.check_in


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    trace_id: Optional[str] = Field(None, description="Trace ID for debugging")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")
