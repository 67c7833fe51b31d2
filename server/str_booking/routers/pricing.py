"""Pricing router for stay quotes."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.dependencies import get_booking_engine
from ..core.exceptions import ProblemDetailsException
from ..core.observability import MetricsCollector
from ..engine import BookingEngine
from ..schemas.common import DateRange
from ..schemas.pricing import QuoteRequest, QuoteResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/pricing", tags=["pricing"])

ENGINE_DEPENDENCY = Depends(get_booking_engine)


@router.post("/quote", response_model=QuoteResponse)
async def quote(
    request: QuoteRequest,
    engine: BookingEngine = ENGINE_DEPENDENCY,
) -> JSONResponse:
    """
    Price a stay and report whether its dates are free.

    This is a read operation and does not require idempotency.
    """
    try:
        date_range = DateRange.of(request.check_in, request.check_out)
        pricing = await engine.pricing.calculate(request.property_id, date_range, request.guests)
        available = await engine.availability.is_available(request.property_id, date_range)
        MetricsCollector.record_quote()

        response_data = QuoteResponse(
            property_id=request.property_id,
            check_in=request.check_in,
            check_out=request.check_out,
            guests=request.guests,
            currency=settings.currency,
            available=available,
            pricing=pricing,
        )

        logger.info(
            "Quote calculated",
            extra={
                "property_id": request.property_id,
                "nights": pricing.nights,
                "total": str(pricing.total),
                "available": available,
            }
        )

        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in quote calculation",
            extra={"property_id": request.property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
