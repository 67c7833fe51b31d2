"""Property router for creating and reading rental properties."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import RequiredAuth
from ..core.exceptions import ProblemDetailsException
from ..schemas.property import CreatePropertyRequest, GetPropertyRequest, Property
from ..services.property_service import PropertyService
from ..services.repositories import property_to_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/property", tags=["property"])

DB_DEPENDENCY = Depends(get_db)


def _convert_property_to_schema(property_model) -> Property:
    """Convert property model to schema."""
    return Property(
        id=property_model.id,
        name=property_model.name,
        max_guests=property_model.max_guests,
        settings=property_to_settings(property_model),
        address=property_model.address,
    )


@router.post("/create", response_model=Property, status_code=201)
async def create_property(
    request: CreatePropertyRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: dict = RequiredAuth,
) -> JSONResponse:
    """Create a property. Requires a bearer token."""
    property_service = PropertyService(db)

    try:
        prop = await property_service.create_property(request)
        response_data = _convert_property_to_schema(prop)

        logger.info(
            "Property created successfully",
            extra={"property_id": prop.id, "user_id": user["user_id"]}
        )

        return JSONResponse(
            status_code=201,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in property creation",
            extra={"name": request.name, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Property)
async def get_property(
    request: GetPropertyRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get property details and pricing settings."""
    property_service = PropertyService(db)

    try:
        prop = await property_service.get_property(request.property_id)
        return JSONResponse(
            status_code=200,
            content=_convert_property_to_schema(prop).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in property retrieval",
            extra={"property_id": request.property_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
