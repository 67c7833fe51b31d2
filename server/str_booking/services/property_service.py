"""Property service for creating and reading rental properties."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.property import LOSDiscountTier, Property
from ..schemas.property import CreatePropertyRequest
from .repositories import SqlPropertySettingsReader

logger = logging.getLogger(__name__)


class PropertyService:
    """Service for property-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.reader = SqlPropertySettingsReader(db)

    async def create_property(self, request: CreatePropertyRequest) -> Property:
        """Create a property with its length-of-stay tiers and plan settings."""
        plan = request.plan_config
        prop = Property(
            name=request.name,
            max_guests=request.max_guests,
            nightly_rate=request.nightly_rate,
            cleaning_fee=request.cleaning_fee,
            security_deposit=request.security_deposit,
            tax_rate=request.tax_rate,
            full_enabled=plan.full_enabled,
            two_enabled=plan.two_enabled,
            two_deposit_pct=plan.two_deposit_pct,
            two_days_before=plan.two_days_before,
            four_enabled=plan.four_enabled,
            four_deposit_min_pct=plan.four_deposit_min_pct,
            check_in_time=request.check_in_time,
            check_out_time=request.check_out_time,
            address=request.address,
            door_code=request.door_code,
            wifi_password=request.wifi_password,
            host_phone=request.host_phone,
            los_discounts=[
                LOSDiscountTier(min_nights=tier.min_nights, discount=tier.discount)
                for tier in request.los_discounts
            ],
        )
        self.db.add(prop)
        await self.db.commit()
        await self.db.refresh(prop)

        logger.info(
            "Property created",
            extra={
                "property_id": prop.id,
                "name": prop.name,
                "nightly_rate": str(prop.nightly_rate),
                "los_tiers": len(request.los_discounts),
            }
        )
        return prop

    async def get_property(self, property_id: int) -> Property:
        """
        Get property by ID.

        Raises:
            NotFoundError: If property not found
        """
        return await self.reader.get_property(property_id)
