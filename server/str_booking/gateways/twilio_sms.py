"""Twilio REST adapter for guest SMS."""

import logging
from typing import Optional

import httpx

from .base import GatewayError, extract_error_message

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioSMSSender:
    """Sends a message through ``Accounts/{sid}/Messages.json``."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send(self, phone: str, message: str) -> str:
        """
        Send ``message`` to ``phone`` and return the Twilio message SID.

        Raises:
            GatewayError: If Twilio is not configured, unreachable, or rejects the message
        """
        if not self.configured:
            raise GatewayError("Twilio is not configured", code="not_configured")
        if not phone:
            raise GatewayError("No phone number provided", code="missing_phone")

        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        data = {"To": phone, "From": self.from_number, "Body": message}
        auth = (self.account_sid, self.auth_token)

        try:
            if self._client is not None:
                response = await self._client.post(url, data=data, auth=auth, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, data=data, auth=auth)
        except httpx.HTTPError as e:
            logger.error("Twilio request failed", extra={"error": str(e)})
            raise GatewayError(f"Twilio request failed: {e}", code="network_error") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            raise GatewayError(
                extract_error_message(payload, "Twilio rejected the message."),
                code=str(payload.get("code")) if isinstance(payload, dict) and payload.get("code") else None,
                status_code=response.status_code,
            )

        logger.info("SMS sent", extra={"sid": payload.get("sid")})
        return payload.get("sid", "")
