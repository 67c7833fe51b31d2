"""Replay protection for booking and charge requests carrying an Idempotency-Key."""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ProblemDetailsException
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)


class IdempotencyMismatchError(ProblemDetailsException):
    """Exception when an idempotency key is reused with a different request body."""

    def __init__(self, idempotency_key: str, method: str):
        super().__init__(
            status_code=422,
            title="Idempotency Key Mismatch",
            detail=f"Idempotency key '{idempotency_key}' was already used for '{method}' with a different request body",
            type_uri="https://example.com/problems/idempotency-key-mismatch",
            extensions={
                "code": "IDEMPOTENCY_KEY_MISMATCH",
                "retryable": False,
                "idempotency_key": idempotency_key,
                "method": method,
            },
        )


@dataclass(frozen=True)
class StoredResponse:
    status_code: int
    body: dict[str, Any]


def request_hash(request_body: dict[str, Any]) -> str:
    """SHA-256 of the body serialized with sorted keys."""
    normalized = json.dumps(request_body, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class IdempotencyService:
    """Stores the first response per (key, operation) and replays it."""

    def __init__(self, db: AsyncSession, ttl_hours: Optional[int] = None):
        self.db = db
        self.ttl_hours = settings.idempotency_ttl_hours if ttl_hours is None else ttl_hours

    async def lookup(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
    ) -> Optional[StoredResponse]:
        """
        Return the stored response for a repeated request, or None for a new one.

        Raises:
            IdempotencyMismatchError: If the key was used with a different body
        """
        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.idempotency_key == idempotency_key,
            IdempotencyRecord.method == method,
            IdempotencyRecord.expires_at > datetime.utcnow(),
        )
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is None:
            return None

        if record.request_body_hash != request_hash(request_body):
            logger.warning(
                "Idempotency key mismatch",
                extra={"idempotency_key": idempotency_key, "method": method}
            )
            raise IdempotencyMismatchError(idempotency_key, method)

        logger.info(
            "Replaying stored response",
            extra={
                "idempotency_key": idempotency_key,
                "method": method,
                "status_code": record.response_status_code,
            }
        )
        return StoredResponse(status_code=record.response_status_code, body=json.loads(record.response_body))

    async def store(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
        status_code: int,
        response_body: dict[str, Any],
    ) -> None:
        record = IdempotencyRecord(
            idempotency_key=idempotency_key,
            method=method,
            request_body_hash=request_hash(request_body),
            response_status_code=status_code,
            response_body=json.dumps(response_body, sort_keys=True, separators=(",", ":"), default=str),
            expires_at=datetime.utcnow() + timedelta(hours=self.ttl_hours),
        )

        try:
            self.db.add(record)
            await self.db.commit()
        except IntegrityError:
            # A concurrent request with the same key stored first
            await self.db.rollback()
            logger.info(
                "Idempotency record already stored",
                extra={"idempotency_key": idempotency_key, "method": method}
            )

    async def purge_expired(self) -> int:
        result = await self.db.execute(
            delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= datetime.utcnow())
        )
        await self.db.commit()
        deleted = result.rowcount or 0
        if deleted:
            logger.info("Purged expired idempotency records", extra={"deleted_count": deleted})
        return deleted
