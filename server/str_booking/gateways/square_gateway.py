"""Square Payments API adapter for off-session charges."""

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from ..core.money import round_money, to_minor_units
from .base import ChargeResponse, GatewayError, extract_error_message

logger = logging.getLogger(__name__)

SQUARE_VERSION = "2024-01-18"
SQUARE_PRODUCTION_URL = "https://connect.squareup.com"
SQUARE_SANDBOX_URL = "https://connect.squareupsandbox.com"


class SquareGateway:
    """Charges a card on file through ``POST /v2/payments``."""

    def __init__(
        self,
        access_token: str,
        location_id: str,
        environment: str = "sandbox",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token
        self.location_id = location_id
        self.base_url = SQUARE_PRODUCTION_URL if environment == "production" else SQUARE_SANDBOX_URL
        self.timeout = timeout
        self._client = client

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
        if not self.access_token or not self.location_id:
            raise GatewayError("Square is not configured", code="not_configured")

        body = {
            "source_id": payment_method_ref,
            "customer_id": customer_ref,
            "idempotency_key": idempotency_key,
            "amount_money": {
                "amount": to_minor_units(amount),
                "currency": currency.upper(),
            },
            "location_id": self.location_id,
            "autocomplete": True,
            "reference_id": str(metadata.get("booking_id", "")),
            "note": " ".join(f"{key}={value}" for key, value in metadata.items()),
        }
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Square-Version": SQUARE_VERSION,
        }
        url = f"{self.base_url}/v2/payments"

        try:
            if self._client is not None:
                response = await self._client.post(url, json=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Square request failed", extra={"error": str(e)})
            raise GatewayError(f"Square request failed: {e}", code="network_error") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code < 200 or response.status_code >= 300:
            raise GatewayError(
                extract_error_message(payload, "Square payment failed."),
                status_code=response.status_code,
            )

        payment = payload.get("payment", {})
        if payment.get("status") not in ("COMPLETED", "APPROVED"):
            raise GatewayError(f"Payment not completed (status: {payment.get('status')})")

        return ChargeResponse(
            transaction_id=payment["id"],
            amount=round_money(amount),
            status=payment["status"].lower(),
            raw=payload,
        )
