"""Stripe REST adapter for off-session charges and Connect transfers."""

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from ..core.money import round_money, to_minor_units
from .base import ChargeResponse, GatewayError, TransferResponse, extract_error_message

logger = logging.getLogger(__name__)


def _form_metadata(metadata: dict[str, Any]) -> dict[str, str]:
    return {f"metadata[{key}]": str(value) for key, value in metadata.items()}


class StripeGateway:
    """
    Thin client over the Stripe PaymentIntents and Transfers endpoints.

    Requests are form-encoded as the Stripe API expects, and every call sends
    an ``Idempotency-Key`` so a retried job never charges twice.
    """

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _post(self, path: str, data: dict[str, Any], idempotency_key: str) -> dict[str, Any]:
        if not self.secret_key:
            raise GatewayError("Stripe is not configured", code="not_configured")

        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Idempotency-Key": idempotency_key,
        }
        url = f"{self.api_base}{path}"

        try:
            if self._client is not None:
                response = await self._client.post(url, data=data, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, data=data, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Stripe request failed", extra={"path": path, "error": str(e)})
            raise GatewayError(f"Stripe request failed: {e}", code="network_error") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            error = payload.get("error", {}) if isinstance(payload, dict) else {}
            raise GatewayError(
                extract_error_message(payload, "Stripe request failed."),
                code=error.get("decline_code") or error.get("code"),
                status_code=response.status_code,
            )

        return payload

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
        """Create and confirm a PaymentIntent against a saved card."""
        data = {
            "amount": to_minor_units(amount),
            "currency": currency.lower(),
            "customer": customer_ref,
            "payment_method": payment_method_ref,
            "off_session": "true",
            "confirm": "true",
            **_form_metadata(metadata),
        }
        payload = await self._post("/payment_intents", data, idempotency_key)

        status = payload.get("status")
        if status != "succeeded":
            raise GatewayError(f"Payment not completed (status: {status})", code=status)

        return ChargeResponse(
            transaction_id=payload["id"],
            amount=round_money(amount),
            status=status,
            raw=payload,
        )

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
        """Send funds to a connected account."""
        data = {
            "amount": to_minor_units(amount),
            "currency": currency.lower(),
            "destination": destination,
            "transfer_group": transfer_group,
            **_form_metadata(metadata),
        }
        payload = await self._post("/transfers", data, idempotency_key)

        return TransferResponse(
            transfer_id=payload["id"],
            amount=round_money(amount),
            destination=destination,
            raw=payload,
        )
