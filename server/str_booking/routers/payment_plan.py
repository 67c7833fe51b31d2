"""Payment plan router for plan eligibility, schedules and installment charges."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import RequiredAuth, get_booking_engine, get_booking_service
from ..core.exceptions import GatewayChargeFailedError, ProblemDetailsException
from ..engine import BookingEngine
from ..schemas.payment_plan import (
    ChargeInstallmentRequest,
    ChargeOutcome,
    ChargeResult,
    EligiblePlansRequest,
    EligiblePlansResponse,
    GetScheduleRequest,
    ScheduleResponse,
)
from ..services.booking_service import BookingService
from .idempotency import IDEMPOTENCY_KEY_DEPENDENCY, handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payment-plan", tags=["payment-plan"])

DB_DEPENDENCY = Depends(get_db)
ENGINE_DEPENDENCY = Depends(get_booking_engine)
BOOKING_SERVICE_DEPENDENCY = Depends(get_booking_service)


@router.post("/eligible", response_model=EligiblePlansResponse)
async def eligible_plans(
    request: EligiblePlansRequest,
    engine: BookingEngine = ENGINE_DEPENDENCY,
) -> JSONResponse:
    """Plans a guest may choose for a stay starting on ``check_in``."""
    try:
        today = date.today()
        plans = await engine.payment_plans.get_eligible_plans(request.property_id, request.check_in, today=today)

        response_data = EligiblePlansResponse(
            property_id=request.property_id,
            check_in=request.check_in,
            days_until_check_in=(request.check_in - today).days,
            plans=plans,
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in plan eligibility",
            extra={"property_id": request.property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/schedule", response_model=ScheduleResponse)
async def get_schedule(
    request: GetScheduleRequest,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
) -> JSONResponse:
    """Stored installment schedule of a booking."""
    try:
        schedule = await booking_service.get_schedule(request.booking_id)
        return JSONResponse(status_code=200, content=schedule.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in schedule retrieval",
            extra={"booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/charge", response_model=ChargeResult)
async def charge_installment(
    request: ChargeInstallmentRequest,
    db: AsyncSession = DB_DEPENDENCY,
    booking_service: BookingService = BOOKING_SERVICE_DEPENDENCY,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY,
    user: dict = RequiredAuth,
) -> JSONResponse:
    """
    Charge an installment off-session now. Requires a bearer token.

    A paid installment returns ``already_processed`` without charging again.
    A decline marks the installment failed and returns 402.
    """
    async def operation():
        result = await booking_service.charge_installment(request.booking_id, request.installment_number)
        if result.outcome == ChargeOutcome.FAILED:
            raise GatewayChargeFailedError(
                result.message or "Charge failed",
                booking_id=request.booking_id,
                installment_number=request.installment_number,
            )

        logger.info(
            "Installment charge requested",
            extra={
                "booking_id": request.booking_id,
                "installment_number": request.installment_number,
                "outcome": result.outcome.value,
                "user_id": user["user_id"],
            }
        )
        return result.model_dump(mode="json")

    try:
        return await handle_idempotent_operation(
            method="payment-plan/charge",
            idempotency_key=idempotency_key,
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db,
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in installment charge",
            extra={
                "booking_id": request.booking_id,
                "installment_number": request.installment_number,
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
