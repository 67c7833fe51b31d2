"""Availability router for stay checks and calendar windows."""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from ..core.dependencies import get_availability_checker
from ..core.exceptions import InvalidDateRangeError, ProblemDetailsException
from ..schemas.availability import (
    AvailabilityDay,
    CalendarResponse,
    CheckAvailabilityRequest,
    CheckAvailabilityResponse,
)
from ..schemas.common import DateRange
from ..services.availability_service import AvailabilityChecker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/availability", tags=["availability"])

AVAILABILITY_DEPENDENCY = Depends(get_availability_checker)
DEFAULT_WINDOW_DAYS = 90


@router.post("/check", response_model=CheckAvailabilityResponse)
async def check_availability(
    request: CheckAvailabilityRequest,
    availability: AvailabilityChecker = AVAILABILITY_DEPENDENCY,
) -> JSONResponse:
    """
    Check whether every night of a stay is free.

    This is a read operation and does not require idempotency.
    """
    try:
        date_range = DateRange.of(request.check_in, request.check_out)
        available = await availability.is_available(request.property_id, date_range)

        response_data = CheckAvailabilityResponse(
            property_id=request.property_id,
            check_in=request.check_in,
            check_out=request.check_out,
            nights=date_range.nights,
            available=available,
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in availability check",
            extra={"property_id": request.property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("/{property_id}", response_model=CalendarResponse)
async def get_calendar(
    property_id: int,
    start: Optional[date] = Query(None, description="First night, defaults to today"),
    end: Optional[date] = Query(None, description="Day after the last night, defaults to 90 days out"),
    availability: AvailabilityChecker = AVAILABILITY_DEPENDENCY,
) -> JSONResponse:
    """Stored availability rows for a window; nights without a row are available."""
    start = start or date.today()
    end = end or start + timedelta(days=DEFAULT_WINDOW_DAYS)
    if end <= start:
        raise InvalidDateRangeError(start, end)

    try:
        days = await availability.get_calendar(property_id, start, end)
        response_data = CalendarResponse(
            property_id=property_id,
            start=start,
            end=end,
            days=[AvailabilityDay.model_validate(day) for day in days],
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in calendar retrieval",
            extra={"property_id": property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
