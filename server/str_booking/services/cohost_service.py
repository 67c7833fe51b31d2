"""Co-host split calculator and co-host management."""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import InvalidSplitConfigurationError, NotFoundError
from ..core.money import ZERO, round_money, to_decimal
from ..models.booking import Booking
from ..models.cohost import Cohost
from ..models.property import Property
from ..schemas.cohost import AddCohostRequest, CohostSplit, SplitType

logger = logging.getLogger(__name__)


def transferable_base(total: Decimal, security_deposit: Decimal) -> Decimal:
    """Booking total net of the refundable deposit, which is never split."""
    return round_money(to_decimal(total) - to_decimal(security_deposit))


def calculate_split(total: Decimal, security_deposit: Decimal, split_type: SplitType, split_value: Decimal) -> Decimal:
    """
    Transfer amount owed to a co-host.

    A percentage co-host receives ``base * value``; a fixed co-host receives
    the configured amount capped at the base.
    """
    base = transferable_base(total, security_deposit)
    if base <= 0:
        return ZERO

    if split_type == SplitType.PERCENTAGE:
        return round_money(base * to_decimal(split_value))

    return min(round_money(split_value), base)


def validate_cohost(split_type: SplitType, split_value: Decimal) -> None:
    """
    Reject split settings a co-host may not be configured with.

    Raises:
        InvalidSplitConfigurationError: If a percentage is outside [0, 1] or any value is negative
    """
    value = to_decimal(split_value)

    if value < 0:
        raise InvalidSplitConfigurationError(
            split_type.value,
            split_value,
            detail=f"Split value must not be negative (got {split_value})",
        )

    if split_type == SplitType.PERCENTAGE and value > 1:
        raise InvalidSplitConfigurationError(
            split_type.value,
            split_value,
            detail=f"Percentage split must be between 0 and 1 (got {split_value})",
        )


class CohostSplitCalculator:
    """Stateless calculator exposed through the engine facade."""

    def calculate_split(self, total: Decimal, security_deposit: Decimal, cohost) -> Decimal:
        """``cohost`` is anything with ``split_type`` and ``split_value``."""
        return calculate_split(total, security_deposit, SplitType(cohost.split_type), cohost.split_value)

    def validate(self, split_type: SplitType, split_value: Decimal) -> None:
        validate_cohost(split_type, split_value)


class CohostService:
    """Service for managing a property's co-hosts."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.calculator = CohostSplitCalculator()

    async def add_cohost(self, request: AddCohostRequest) -> Cohost:
        """
        Add a co-host to a property.

        Raises:
            NotFoundError: If the property does not exist
            InvalidSplitConfigurationError: If the split settings are invalid
        """
        self.calculator.validate(request.split_type, request.split_value)

        if await self.db.get(Property, request.property_id) is None:
            raise NotFoundError(resource_type="property", resource_id=str(request.property_id))

        cohost = Cohost(
            property_id=request.property_id,
            split_type=request.split_type,
            split_value=request.split_value,
            account_ref=request.account_ref,
            display_name=request.display_name,
            email=request.email,
            is_active=True,
        )
        self.db.add(cohost)
        await self.db.commit()
        await self.db.refresh(cohost)

        logger.info(
            "Co-host added",
            extra={
                "cohost_id": cohost.id,
                "property_id": request.property_id,
                "split_type": request.split_type.value,
                "split_value": str(request.split_value),
            }
        )
        return cohost

    async def remove_cohost(self, cohost_id: int) -> Cohost:
        """Deactivate a co-host; past transfers keep referring to it."""
        cohost = await self.db.get(Cohost, cohost_id)
        if cohost is None:
            raise NotFoundError(resource_type="cohost", resource_id=str(cohost_id))

        cohost.is_active = False
        await self.db.commit()

        logger.info("Co-host deactivated", extra={"cohost_id": cohost_id, "property_id": cohost.property_id})
        return cohost

    async def list_cohosts(self, property_id: int, active_only: bool = True) -> list[Cohost]:
        stmt = select(Cohost).where(Cohost.property_id == property_id)
        if active_only:
            stmt = stmt.where(Cohost.is_active.is_(True))
        result = await self.db.execute(stmt.order_by(Cohost.id))
        return list(result.scalars().all())

    async def splits_for_booking(self, booking_id: int) -> tuple[Decimal, list[CohostSplit]]:
        """
        Each active co-host's split of a booking and the base they were taken from.

        Raises:
            NotFoundError: If the booking does not exist
        """
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

        splits = [
            CohostSplit(
                cohost_id=cohost.id,
                account_ref=cohost.account_ref,
                amount=self.calculator.calculate_split(booking.total, booking.security_deposit, cohost),
            )
            for cohost in await self.list_cohosts(booking.property_id)
        ]
        return transferable_base(booking.total, booking.security_deposit), splits
