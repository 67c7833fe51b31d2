#!/usr/bin/env python3
"""Create the booking database schema and a sample property."""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from sqlalchemy import func, select  # noqa: E402

from str_booking.core.database import async_session_factory, close_db, init_db  # noqa: E402
from str_booking.models import *  # noqa: E402,F403 - register every table
from str_booking.models.property import Property  # noqa: E402
from str_booking.schemas.pricing import LOSDiscountTier  # noqa: E402
from str_booking.schemas.property import CreatePropertyRequest, PlanConfig  # noqa: E402
from str_booking.services.property_service import PropertyService  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def setup_database():
    logger.info("Creating tables...")
    await init_db()
    logger.info("Tables created")


async def create_sample_data():
    """Create one bookable property unless properties already exist."""
    async with async_session_factory() as db:
        existing = (await db.execute(select(func.count()).select_from(Property))).scalar_one()
        if existing > 0:
            logger.info("Sample data already exists, skipping...")
            return

        prop = await PropertyService(db).create_property(
            CreatePropertyRequest(
                name="Lakeside Cabin",
                nightly_rate=Decimal("100.00"),
                cleaning_fee=Decimal("50.00"),
                security_deposit=Decimal("200.00"),
                tax_rate=Decimal("0.08"),
                max_guests=6,
                los_discounts=[
                    LOSDiscountTier(min_nights=7, discount=Decimal("0.10")),
                    LOSDiscountTier(min_nights=28, discount=Decimal("0.20")),
                ],
                plan_config=PlanConfig(two_enabled=True, four_enabled=True),
                address="1 Shore Road",
                door_code="4821",
                wifi_password="lakeside-guest",
            )
        )
        logger.info(f"Created sample property {prop.id} ({prop.name})")


async def main():
    await setup_database()
    await create_sample_data()
    await close_db()

    logger.info("Setup completed successfully!")
    logger.info("Start the API with: cd server && uvicorn str_booking.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
