"""Calendar router for iCal export and external feed import."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse

from ..core.dependencies import RequiredAuth, get_calendar_sync_service
from ..core.exceptions import ProblemDetailsException
from ..schemas.calendar import AddFeedRequest, CalendarFeed, SyncRequest, SyncResponse
from ..services.calendar_sync_service import CalendarSyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/calendar", tags=["calendar"])

CALENDAR_SERVICE_DEPENDENCY = Depends(get_calendar_sync_service)


@router.get("/{property_id}.ics", response_class=Response)
async def export_calendar(
    property_id: int,
    calendar_service: CalendarSyncService = CALENDAR_SERVICE_DEPENDENCY,
) -> Response:
    """iCal feed of the property's booked and blocked nights for other platforms to import."""
    try:
        body = await calendar_service.export_ical(property_id)
        return Response(
            content=body,
            media_type="text/calendar; charset=utf-8",
            headers={"Content-Disposition": f'inline; filename="property-{property_id}.ics"'},
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in calendar export",
            extra={"property_id": property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/feeds/add", response_model=CalendarFeed, status_code=201)
async def add_feed(
    request: AddFeedRequest,
    calendar_service: CalendarSyncService = CALENDAR_SERVICE_DEPENDENCY,
    user: dict = RequiredAuth,
) -> JSONResponse:
    """Subscribe a property to an external iCal feed. Requires a bearer token."""
    try:
        feed = await calendar_service.add_feed(request)
        return JSONResponse(
            status_code=201,
            content=CalendarFeed.model_validate(feed).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error adding calendar feed",
            extra={"property_id": request.property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/sync", response_model=SyncResponse)
async def sync(
    request: SyncRequest,
    calendar_service: CalendarSyncService = CALENDAR_SERVICE_DEPENDENCY,
    user: dict = RequiredAuth,
) -> JSONResponse:
    """Import a property's feeds now instead of waiting for the hourly run. Requires a bearer token."""
    try:
        feeds = await calendar_service.sync_property(request.property_id)
        response_data = SyncResponse(
            property_id=request.property_id,
            feeds_processed=len(feeds),
            feeds=[CalendarFeed.model_validate(feed) for feed in feeds],
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in calendar sync",
            extra={"property_id": request.property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
