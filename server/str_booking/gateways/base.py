"""Shared types for outbound payment and messaging providers."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional


class GatewayError(Exception):
    """A provider declined the request or could not be reached."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


@dataclass(frozen=True)
class ChargeResponse:
    """Successful off-session charge."""

    transaction_id: str
    amount: Decimal
    status: str = "succeeded"
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class TransferResponse:
    """Successful payout to a connected account."""

    transfer_id: str
    amount: Decimal
    destination: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


def extract_error_message(payload: Any, default: str) -> str:
    """Pull a human-readable message out of a provider error body."""
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict):
                return str(first.get("detail") or first.get("code") or default)
        if payload.get("message"):
            return str(payload["message"])
    return default
