"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

from typing import Any, Dict, Optional
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
import uuid
from datetime import date, datetime


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        # Create the problem details object
        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        # Add extensions
        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    @property
    def code(self) -> Optional[str]:
        """Application-specific error code, if any."""
        return self.problem_details.get("code")


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
        code: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {"retryable": False}
        if code:
            extensions["code"] = code
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri="https://example.com/problems/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri="https://example.com/problems/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://example.com/problems/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri="https://example.com/problems/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


# Business logic exceptions

class InvalidDateRangeError(ValidationError):
    """Check-out is missing, malformed, or not after check-in."""

    def __init__(self, check_in: Optional[date] = None, check_out: Optional[date] = None):
        detail = "Invalid check-in or check-out dates."
        if check_in and check_out:
            detail = f"Check-out {check_out.isoformat()} must be after check-in {check_in.isoformat()}."
        super().__init__(detail=detail, code="INVALID_DATES")


class InvalidNightsError(ValidationError):
    """Stay is shorter than one night."""

    def __init__(self, nights: int):
        super().__init__(
            detail=f"Booking must be at least 1 night (got {nights}).",
            code="INVALID_NIGHTS",
        )
        self.nights = nights


class InvalidSplitConfigurationError(ProblemDetailsException):
    """Co-host split value is outside its allowed range."""

    def __init__(self, split_type: str, split_value: Any, detail: Optional[str] = None):
        if not detail:
            detail = f"Invalid {split_type} split value: {split_value}"
        super().__init__(
            status_code=422,
            title="Invalid Split Configuration",
            detail=detail,
            type_uri="https://example.com/problems/invalid-split-configuration",
            extensions={
                "code": "INVALID_SPLIT",
                "retryable": False,
                "split_type": split_type,
                "split_value": str(split_value),
            },
        )


class GatewayChargeFailedError(ProblemDetailsException):
    """Off-session charge was declined or the gateway errored."""

    def __init__(self, gateway_message: str, booking_id: Optional[int] = None, installment_number: Optional[int] = None):
        extensions: Dict[str, Any] = {
            "code": "GATEWAY_CHARGE_FAILED",
            "retryable": True,
            "gateway_message": gateway_message,
        }
        if booking_id is not None:
            extensions["booking_id"] = booking_id
        if installment_number is not None:
            extensions["installment_number"] = installment_number

        super().__init__(
            status_code=402,
            title="Payment Failed",
            detail=f"Payment gateway charge failed: {gateway_message}",
            type_uri="https://example.com/problems/gateway-charge-failed",
            extensions=extensions,
        )
        self.gateway_message = gateway_message


class DatesUnavailableError(ConflictError):
    """Requested stay overlaps booked or blocked dates."""

    def __init__(self, property_id: int, check_in: date, check_out: date):
        super().__init__(
            detail=f"Property {property_id} is not available from {check_in.isoformat()} to {check_out.isoformat()}",
            conflicting_resource={
                "property_id": property_id,
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
            }
        )
        self.problem_details.update({
            "code": "DATES_UNAVAILABLE",
            "retryable": False
        })


class PlanNotEligibleError(ConflictError):
    """Payment plan is disabled or check-in is too close for it."""

    def __init__(self, plan: str, eligible_plans: list[str]):
        super().__init__(
            detail=f"Payment plan '{plan}' is not available for this stay",
            conflicting_resource={"plan": plan, "eligible_plans": eligible_plans}
        )
        self.problem_details.update({
            "code": "PLAN_NOT_ELIGIBLE",
            "retryable": False
        })


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())

    problem_details = {
        "type": "https://example.com/problems/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
    )
