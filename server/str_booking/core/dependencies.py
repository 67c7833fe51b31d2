"""FastAPI dependencies for database, authentication, gateways and service composition."""

from datetime import datetime
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..engine import BookingEngine
from ..gateways.resend_email import ResendEmailSender
from ..gateways.square_gateway import SquareGateway
from ..gateways.stripe_gateway import StripeGateway
from ..gateways.twilio_sms import TwilioSMSSender
from ..services.availability_service import AvailabilityChecker
from ..services.booking_service import BookingService
from ..services.calendar_sync_service import CalendarSyncService
from ..services.notification_service import EmailSender, LoggingEmailSender, NotificationService
from ..services.ports import OffSessionChargeInvoker, TransferInvoker
from ..services.repositories import (
    SqlAvailabilityStore,
    SqlBookingOverlapReader,
    SqlInstallmentStore,
    SqlPropertySettingsReader,
)
from .config import settings
from .database import get_db


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        dict: User information from validated token

    Raises:
        HTTPException: If token is invalid or missing
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication scheme",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except PyJWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    exp = payload.get("exp")
    if exp and datetime.utcnow().timestamp() > exp:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "user_id": user_id,
        "username": payload.get("username"),
        "email": payload.get("email"),
        "roles": payload.get("roles", []),
    }


def get_payment_gateway() -> OffSessionChargeInvoker:
    """The configured gateway for off-session installment charges."""
    if settings.payment_gateway == "square":
        return SquareGateway(
            access_token=settings.square_access_token,
            location_id=settings.square_location_id,
            environment=settings.square_environment,
            timeout=settings.gateway_timeout_seconds,
        )
    return StripeGateway(
        secret_key=settings.stripe_secret_key,
        api_base=settings.stripe_api_base,
        timeout=settings.gateway_timeout_seconds,
    )


def get_transfer_gateway() -> TransferInvoker:
    """Co-host payouts go through Stripe Connect whichever gateway takes charges."""
    return StripeGateway(
        secret_key=settings.stripe_secret_key,
        api_base=settings.stripe_api_base,
        timeout=settings.gateway_timeout_seconds,
    )


def get_sms_sender() -> Optional[TwilioSMSSender]:
    if not settings.sms_enabled:
        return None
    return TwilioSMSSender(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_from_number,
    )


def get_email_sender() -> EmailSender:
    """Resend unless ``EMAIL_PROVIDER=log``, which only writes messages to the log."""
    if settings.email_provider == "log":
        return LoggingEmailSender(settings.email_from_name, settings.email_from_address)
    return ResendEmailSender(
        api_key=settings.resend_api_key,
        from_name=settings.email_from_name,
        from_address=settings.email_from_address,
        api_base=settings.resend_api_base,
        timeout=settings.gateway_timeout_seconds,
    )


def build_booking_engine(db: AsyncSession, charger: OffSessionChargeInvoker) -> BookingEngine:
    """Compose the engine over the SQLAlchemy repositories of one session."""
    installments = SqlInstallmentStore(db)
    return BookingEngine.compose(
        properties=SqlPropertySettingsReader(db),
        availability_store=SqlAvailabilityStore(db),
        bookings=SqlBookingOverlapReader(db),
        installments=installments,
        payment_methods=installments,
        charger=charger,
    )


def build_booking_service(
    db: AsyncSession,
    engine: BookingEngine,
    sms_sender: Optional[TwilioSMSSender] = None,
) -> BookingService:
    return BookingService(db, engine, NotificationService(db, get_email_sender(), sms_sender))


async def get_booking_engine(
    db: AsyncSession = Depends(get_db),
    charger: OffSessionChargeInvoker = Depends(get_payment_gateway),
) -> BookingEngine:
    return build_booking_engine(db, charger)


async def get_availability_checker(engine: BookingEngine = Depends(get_booking_engine)) -> AvailabilityChecker:
    return engine.availability


async def get_booking_service(
    db: AsyncSession = Depends(get_db),
    engine: BookingEngine = Depends(get_booking_engine),
    sms_sender: Optional[TwilioSMSSender] = Depends(get_sms_sender),
) -> BookingService:
    return build_booking_service(db, engine, sms_sender)


async def get_calendar_sync_service(
    db: AsyncSession = Depends(get_db),
    engine: BookingEngine = Depends(get_booking_engine),
) -> CalendarSyncService:
    return CalendarSyncService(db, engine.availability)


RequiredAuth = Depends(get_current_user)
DatabaseSession = Depends(get_db)
