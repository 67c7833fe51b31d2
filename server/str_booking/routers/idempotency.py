"""Idempotency-Key handling shared by the mutating routers."""

import logging
from typing import Any, Awaitable, Callable

from fastapi import Header
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ProblemDetailsException
from ..services.idempotency_service import IdempotencyService

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_DEPENDENCY = Header(..., alias="Idempotency-Key", min_length=1, max_length=255)


async def handle_idempotent_operation(
    method: str,
    idempotency_key: str,
    request_body: dict[str, Any],
    operation_func: Callable[[], Awaitable[dict[str, Any]]],
    db: AsyncSession,
    status_code: int = 200,
) -> JSONResponse:
    """
    Run ``operation_func`` once per (key, method) and replay its response afterwards.

    Problem responses are stored as well, so a retried request that failed
    validation fails the same way.
    """
    idempotency_service = IdempotencyService(db)

    stored = await idempotency_service.lookup(idempotency_key, method, request_body)
    if stored is not None:
        return JSONResponse(status_code=stored.status_code, content=stored.body)

    try:
        response_body = await operation_func()
    except ProblemDetailsException as e:
        await db.rollback()
        await idempotency_service.store(
            idempotency_key=idempotency_key,
            method=method,
            request_body=request_body,
            status_code=e.status_code,
            response_body=e.problem_details,
        )
        raise

    await idempotency_service.store(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body,
        status_code=status_code,
        response_body=response_body,
    )
    return JSONResponse(status_code=status_code, content=response_body)
