"""Test configuration and fixtures."""

import os

# Point the application engine at SQLite before anything imports settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EMAIL_PROVIDER", "log")

from datetime import date, datetime, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Optional  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from str_booking.core.config import settings  # noqa: E402
from str_booking.core.database import Base, get_db  # noqa: E402
from str_booking.core.dependencies import build_booking_engine, build_booking_service  # noqa: E402
from str_booking.gateways.base import ChargeResponse, GatewayError, TransferResponse  # noqa: E402
from str_booking.models import *  # noqa: E402,F403 - Import all models
from str_booking.schemas.booking import CreateBookingRequest  # noqa: E402
from str_booking.schemas.payment_plan import PaymentPlan  # noqa: E402
from str_booking.schemas.pricing import LOSDiscountTier  # noqa: E402
from str_booking.schemas.property import CreatePropertyRequest, PlanConfig  # noqa: E402
from str_booking.services.property_service import PropertyService  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeGateway:
    """Records charges and transfers; ``fail_with`` makes every call decline."""

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.charges: list[dict[str, Any]] = []
        self.transfers: list[dict[str, Any]] = []

    async def charge_off_session(self, **kwargs) -> ChargeResponse:
        self.charges.append(kwargs)
        if self.fail_with:
            raise GatewayError(self.fail_with, code="card_declined", status_code=402)
        return ChargeResponse(transaction_id=f"pi_{len(self.charges)}", amount=kwargs["amount"])

    async def transfer(self, **kwargs) -> TransferResponse:
        self.transfers.append(kwargs)
        if self.fail_with:
            raise GatewayError(self.fail_with, code="account_invalid", status_code=400)
        return TransferResponse(
            transfer_id=f"tr_{len(self.transfers)}",
            amount=kwargs["amount"],
            destination=kwargs["destination"],
        )


class RecordingEmailSender:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> str:
        if self.fail:
            raise GatewayError("Resend unavailable")
        self.sent.append((to, subject, body))
        return f"email_{len(self.sent)}"


class RecordingSMSSender:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    async def send(self, phone: str, message: str) -> str:
        if self.fail:
            raise GatewayError("Twilio unavailable")
        self.sent.append((phone, message))
        return f"SM{len(self.sent)}"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def engine(test_session, gateway):
    """Booking engine over the SQL repositories of the test session."""
    return build_booking_engine(test_session, gateway)


@pytest.fixture
def auth_headers():
    token = jwt.encode(
        {
            "sub": "host-1",
            "username": "host",
            "exp": int((datetime.utcnow() + timedelta(hours=1)).timestamp()),
        },
        settings.bearer_token_secret,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def today():
    return date(2026, 1, 10)


@pytest.fixture
def sample_property_request():
    """$100/night, 10% off from 7 nights, $50 cleaning, $200 deposit, 8% tax."""
    return CreatePropertyRequest(
        name="Lakeside Cabin",
        nightly_rate=Decimal("100.00"),
        cleaning_fee=Decimal("50.00"),
        security_deposit=Decimal("200.00"),
        tax_rate=Decimal("0.08"),
        max_guests=4,
        los_discounts=[LOSDiscountTier(min_nights=7, discount=Decimal("0.10"))],
        plan_config=PlanConfig(two_enabled=True, four_enabled=True),
        address="1 Shore Road",
        door_code="4821",
        wifi_password="lakeside-guest",
        host_phone="+15550100",
    )


@pytest_asyncio.fixture
async def sample_property(test_session, sample_property_request):
    return await PropertyService(test_session).create_property(sample_property_request)


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, gateway):
    """Create a test FastAPI application."""
    from fastapi import FastAPI

    from str_booking.core.dependencies import get_payment_gateway, get_sms_sender
    from str_booking.core.exceptions import ProblemDetailsException, generic_exception_handler, problem_details_handler
    from str_booking.routers import (
        availability,
        booking,
        calendar,
        cohost,
        health,
        metrics,
        payment_plan,
        pricing,
        property,
    )

    # Simplified app without lifespan, middleware or tracing
    app = FastAPI(title="STR Direct Booking API (Test)", version="1.0.0-test")

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    for module in (health, property, pricing, availability, booking, payment_plan, cohost, calendar, metrics):
        app.include_router(module.router)

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_sms_sender] = lambda: None

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def booking_service(test_session, engine):
    return build_booking_service(test_session, engine)


def make_booking_request(property_id: int, check_in: date, nights: int, **overrides) -> CreateBookingRequest:
    """A valid booking request for ``nights`` nights starting ``check_in``."""
    fields = {
        "property_id": property_id,
        "check_in": check_in,
        "check_out": check_in + timedelta(days=nights),
        "guests": 2,
        "guest_name": "Ada Guest",
        "guest_email": "ada@example.com",
        "guest_phone": "+15550123",
        "payment_plan": PaymentPlan.PAY_IN_FULL,
        "payment_customer_ref": "cus_123",
        "payment_method_ref": "pm_123",
    }
    fields.update(overrides)
    return CreateBookingRequest(**fields)
