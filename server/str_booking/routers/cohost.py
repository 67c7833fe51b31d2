"""Co-host router for managing co-hosts and previewing booking splits."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import RequiredAuth
from ..core.exceptions import ProblemDetailsException
from ..schemas.cohost import (
    AddCohostRequest,
    Cohost,
    CohostListResponse,
    ListCohostsRequest,
    RemoveCohostRequest,
    SplitRequest,
    SplitResponse,
)
from ..services.cohost_service import CohostService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/cohost", tags=["cohost"])

DB_DEPENDENCY = Depends(get_db)


@router.post("/add", response_model=Cohost, status_code=201)
async def add_cohost(
    request: AddCohostRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: dict = RequiredAuth,
) -> JSONResponse:
    """Add a co-host to a property. Requires a bearer token."""
    cohost_service = CohostService(db)

    try:
        cohost = await cohost_service.add_cohost(request)
        return JSONResponse(
            status_code=201,
            content=Cohost.model_validate(cohost).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error adding co-host",
            extra={"property_id": request.property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/remove", response_model=Cohost)
async def remove_cohost(
    request: RemoveCohostRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: dict = RequiredAuth,
) -> JSONResponse:
    """Deactivate a co-host. Requires a bearer token."""
    cohost_service = CohostService(db)

    try:
        cohost = await cohost_service.remove_cohost(request.cohost_id)
        return JSONResponse(
            status_code=200,
            content=Cohost.model_validate(cohost).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error removing co-host",
            extra={"cohost_id": request.cohost_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/list", response_model=CohostListResponse)
async def list_cohosts(
    request: ListCohostsRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Co-hosts of a property."""
    cohost_service = CohostService(db)

    try:
        cohosts = await cohost_service.list_cohosts(request.property_id, active_only=not request.include_inactive)
        response_data = CohostListResponse(
            property_id=request.property_id,
            cohosts=[Cohost.model_validate(cohost) for cohost in cohosts],
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error listing co-hosts",
            extra={"property_id": request.property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/split", response_model=SplitResponse)
async def split(
    request: SplitRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Amount each active co-host would receive for a booking."""
    cohost_service = CohostService(db)

    try:
        base, splits = await cohost_service.splits_for_booking(request.booking_id)
        response_data = SplitResponse(booking_id=request.booking_id, transferable_base=base, splits=splits)
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error computing co-host splits",
            extra={"booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
