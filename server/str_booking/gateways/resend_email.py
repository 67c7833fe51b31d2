"""Resend REST adapter for guest email."""

import logging
from typing import Optional

import httpx

from .base import GatewayError, extract_error_message

logger = logging.getLogger(__name__)

RESEND_API_BASE = "https://api.resend.com"


class ResendEmailSender:
    """Sends plain-text mail through ``POST /emails``."""

    def __init__(
        self,
        api_key: str,
        from_name: str,
        from_address: str,
        api_base: str = RESEND_API_BASE,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.from_name = from_name
        self.from_address = from_address
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.from_address)

    async def send(self, to: str, subject: str, body: str) -> str:
        """
        Send one message and return the Resend email ID.

        Raises:
            GatewayError: If Resend is not configured, unreachable, or rejects the message
        """
        if not self.configured:
            raise GatewayError("Resend is not configured", code="not_configured")
        if not to:
            raise GatewayError("No recipient provided", code="missing_recipient")

        url = f"{self.api_base}/emails"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "from": f"{self.from_name} <{self.from_address}>",
            "to": [to],
            "subject": subject,
            "text": body,
        }

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Resend request failed", extra={"error": str(e)})
            raise GatewayError(f"Resend request failed: {e}", code="network_error") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            raise GatewayError(
                extract_error_message(data, "Resend rejected the message."),
                code=str(data.get("name")) if isinstance(data, dict) and data.get("name") else None,
                status_code=response.status_code,
            )

        logger.info("Email sent", extra={"email_id": data.get("id"), "subject": subject})
        return data.get("id", "")
