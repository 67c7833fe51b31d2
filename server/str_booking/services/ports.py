"""
Collaborator protocols consumed by the booking engine.

The pricing, availability, payment plan and co-host components depend only on
these protocols. ``repositories.py`` provides the SQLAlchemy implementations
and ``gateways/`` the HTTP ones; tests substitute in-memory fakes.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Protocol

from ..gateways.base import ChargeResponse, TransferResponse
from ..schemas.availability import AvailabilityDay, AvailabilityStatus
from ..schemas.booking import BookingStatus
from ..schemas.payment_plan import Installment
from ..schemas.property import PropertySettings


@dataclass(frozen=True)
class StoredPaymentMethod:
    """Gateway references saved at booking time for later off-session charges."""

    customer_ref: str
    payment_method_ref: str


class PropertySettingsReader(Protocol):
    async def get_settings(self, property_id: int) -> PropertySettings:
        """Return pricing and plan settings; raise ``NotFoundError`` if unknown."""
        ...


class AvailabilityStore(Protocol):
    async def get_days(self, property_id: int, start: date, end: date) -> list[AvailabilityDay]:
        """Stored rows with ``start <= date < end``."""
        ...

    async def get_rate_overrides(self, property_id: int, start: date, end: date) -> dict[date, Decimal]:
        ...

    async def upsert_days(
        self,
        property_id: int,
        dates: Iterable[date],
        status: AvailabilityStatus,
        booking_id: Optional[int] = None,
        block_reason: Optional[str] = None,
    ) -> None:
        """Write one row per date, replacing whatever row that date had."""
        ...

    async def delete_days(self, property_id: int, start: date, end: date, status: AvailabilityStatus) -> int:
        """Delete rows in ``[start, end)`` that currently have ``status``."""
        ...


class BookingOverlapReader(Protocol):
    async def has_overlap(
        self,
        property_id: int,
        check_in: date,
        check_out: date,
        statuses: Iterable[BookingStatus],
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        ...


class InstallmentStore(Protocol):
    async def get_installments(self, booking_id: int) -> list[Installment]:
        ...

    async def get_installment(self, booking_id: int, number: int) -> Optional[Installment]:
        ...

    async def mark_paid(self, booking_id: int, number: int, transaction_id: str) -> None:
        ...

    async def mark_failed(self, booking_id: int, number: int, message: str) -> None:
        ...


class PaymentMethodReader(Protocol):
    async def get_payment_method(self, booking_id: int) -> Optional[StoredPaymentMethod]:
        ...


class OffSessionChargeInvoker(Protocol):
    async def charge_off_session(
        self,
        *,
        customer_ref: str,
        payment_method_ref: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, Any],
        idempotency_key: str,
    ) -> ChargeResponse:
        """Charge a saved payment method; raise ``GatewayError`` on decline."""
        ...


class TransferInvoker(Protocol):
    async def transfer(
        self,
        *,
        destination: str,
        amount: Decimal,
        currency: str,
        transfer_group: str,
        metadata: dict[str, Any],
        idempotency_key: str,
    ) -> TransferResponse:
        """Pay out to a connected account; raise ``GatewayError`` on failure."""
        ...
