"""Booking router for booking operations."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_booking_service
from ..core.exceptions import ProblemDetailsException
from ..schemas.booking import Booking, CancelBookingRequest, CreateBookingRequest, GetBookingRequest
from ..services.booking_service import BookingService
from .idempotency import IDEMPOTENCY_KEY_DEPENDENCY, handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
BOOKING_SERVICE_DEPENDENCY = Depends(get_booking_service)


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking.model_validate(booking_model)


@router.post("/create", response_model=Booking, status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Book a stay: check eligibility and availability, price it, charge the up-front
    installment, and store the schedule.

    This operation is idempotent based on the Idempotency-Key header.
    """
    async def operation():
        booking = await booking_service.create_booking(request, idempotency_key)
        return _convert_booking_to_schema(booking).model_dump(mode="json")

    try:
        return await handle_idempotent_operation(
            method="booking/create",
            idempotency_key=idempotency_key,
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db,
            status_code=201,
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "property_id": request.property_id,
                "check_in": request.check_in.isoformat(),
                "check_out": request.check_out.isoformat(),
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> JSONResponse:
    """
    Cancel a booking and release its nights.

    Cancelling an already cancelled booking returns it unchanged.
    """
    try:
        booking = await booking_service.cancel_booking(request)
        return JSONResponse(
            status_code=200,
            content=_convert_booking_to_schema(booking).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking cancellation",
            extra={
                "booking_id": request.booking_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> JSONResponse:
    """
    Get booking details.

    This is a read operation and does not require idempotency.
    """
    try:
        booking = await booking_service.get_booking_by_id_or_raise(request.booking_id)
        response_data = _convert_booking_to_schema(booking)

        logger.info(
            "Booking retrieved successfully",
            extra={
                "booking_id": request.booking_id,
                "booking_code": booking.code
            }
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking retrieval",
            extra={
                "booking_id": request.booking_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
