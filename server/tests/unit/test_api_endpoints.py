"""Integration tests for API endpoints."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from conftest import FakeGateway

from str_booking.core.dependencies import get_payment_gateway

CHECK_IN = date.today() + timedelta(days=200)


def _booking_payload(property_id: int, check_in: date = CHECK_IN, nights: int = 7, **overrides) -> dict:
    payload = {
        "property_id": property_id,
        "check_in": check_in.isoformat(),
        "check_out": (check_in + timedelta(days=nights)).isoformat(),
        "guests": 2,
        "guest_name": "Ada Guest",
        "guest_email": "ada@example.com",
        "guest_phone": "+15550123",
        "payment_plan": "pay_in_full",
        "payment_customer_ref": "cus_123",
        "payment_method_ref": "pm_123",
    }
    payload.update(overrides)
    return payload


async def _create_booking(test_client, property_id: int, key: str = "booking-key-1", **overrides):
    return await test_client.post(
        "/v1/booking/create",
        json=_booking_payload(property_id, **overrides),
        headers={"Idempotency-Key": key},
    )


@pytest.mark.asyncio
async def test_create_property_endpoint(test_client, auth_headers):
    """Test the property creation endpoint."""
    response = await test_client.post(
        "/v1/property/create",
        json={
            "name": "Harbor Loft",
            "nightly_rate": "180.00",
            "cleaning_fee": "75.00",
            "tax_rate": "0.1",
            "max_guests": 3,
            "los_discounts": [{"min_nights": 28, "discount": "0.2"}, {"min_nights": 7, "discount": "0.1"}],
            "plan_config": {"two_enabled": True},
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Harbor Loft"
    assert data["max_guests"] == 3
    assert Decimal(data["settings"]["nightly_rate"]) == Decimal("180.00")
    assert data["settings"]["plan_config"]["two_enabled"] is True
    assert data["settings"]["plan_config"]["four_enabled"] is False
    assert "id" in data

    fetched = await test_client.post("/v1/property/get", json={"property_id": data["id"]})
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Harbor Loft"


@pytest.mark.asyncio
async def test_create_property_rejects_shrinking_discount_tiers(test_client, auth_headers):
    response = await test_client.post(
        "/v1/property/create",
        json={
            "name": "Harbor Loft",
            "nightly_rate": "180.00",
            "los_discounts": [{"min_nights": 7, "discount": "0.2"}, {"min_nights": 28, "discount": "0.1"}],
        },
        headers=auth_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_property_missing_auth(test_client):
    """Test property creation without authentication."""
    response = await test_client.post("/v1/property/create", json={"name": "Harbor Loft", "nightly_rate": "180"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_property_invalid_token(test_client):
    response = await test_client.post(
        "/v1/property/create",
        json={"name": "Harbor Loft", "nightly_rate": "180"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_property_invalid_data(test_client, auth_headers):
    response = await test_client.post(
        "/v1/property/create",
        json={"name": "", "nightly_rate": "-5"},
        headers=auth_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_unknown_property(test_client):
    response = await test_client.post("/v1/property/get", json={"property_id": 999})

    assert response.status_code == 404
    assert response.json()["status"] == 404


@pytest.mark.asyncio
async def test_quote_endpoint(test_client, sample_property):
    """Test the quote endpoint for a 7-night stay."""
    response = await test_client.post(
        "/v1/pricing/quote",
        json={
            "property_id": sample_property.id,
            "check_in": CHECK_IN.isoformat(),
            "check_out": (CHECK_IN + timedelta(days=7)).isoformat(),
            "guests": 2,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["available"] is True
    assert data["currency"] == "usd"
    pricing = data["pricing"]
    assert pricing["nights"] == 7
    assert Decimal(pricing["nightly_subtotal"]) == Decimal("700.00")
    assert Decimal(pricing["los_discount"]) == Decimal("70.00")
    assert Decimal(pricing["taxes"]) == Decimal("50.40")
    assert Decimal(pricing["total"]) == Decimal("930.40")
    assert len(pricing["daily_breakdown"]) == 7


@pytest.mark.asyncio
async def test_quote_reversed_dates(test_client, sample_property):
    response = await test_client.post(
        "/v1/pricing/quote",
        json={
            "property_id": sample_property.id,
            "check_in": CHECK_IN.isoformat(),
            "check_out": CHECK_IN.isoformat(),
        },
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_DATES"


@pytest.mark.asyncio
async def test_availability_check_endpoint(test_client, sample_property):
    payload = {
        "property_id": sample_property.id,
        "check_in": CHECK_IN.isoformat(),
        "check_out": (CHECK_IN + timedelta(days=3)).isoformat(),
    }

    before = await test_client.post("/v1/availability/check", json=payload)
    await _create_booking(test_client, sample_property.id)
    after = await test_client.post("/v1/availability/check", json=payload)

    assert before.json()["available"] is True
    assert before.json()["nights"] == 3
    assert after.json()["available"] is False


@pytest.mark.asyncio
async def test_availability_calendar_endpoint(test_client, sample_property):
    await _create_booking(test_client, sample_property.id, nights=2)

    response = await test_client.get(
        f"/v1/availability/{sample_property.id}",
        params={"start": CHECK_IN.isoformat(), "end": (CHECK_IN + timedelta(days=5)).isoformat()},
    )

    assert response.status_code == 200
    days = response.json()["days"]
    assert [day["status"] for day in days] == ["booked", "booked"]


@pytest.mark.asyncio
async def test_eligible_plans_endpoint(test_client, sample_property):
    response = await test_client.post(
        "/v1/payment-plan/eligible",
        json={"property_id": sample_property.id, "check_in": CHECK_IN.isoformat()},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["days_until_check_in"] == 200
    assert data["plans"] == ["pay_in_full", "two_payment", "four_payment"]


@pytest.mark.asyncio
async def test_create_booking_endpoint(test_client, sample_property):
    """Test the booking creation endpoint."""
    response = await _create_booking(test_client, sample_property.id)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["nights"] == 7
    assert Decimal(data["total"]) == Decimal("930.40")
    assert data["installments"][0]["status"] == "paid"
    assert len(data["code"]) == 8


@pytest.mark.asyncio
async def test_create_booking_replays_same_key(test_client, sample_property):
    first = await _create_booking(test_client, sample_property.id, key="replay-key")
    second = await _create_booking(test_client, sample_property.id, key="replay-key")

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json() == first.json()


@pytest.mark.asyncio
async def test_create_booking_key_reused_with_other_body(test_client, sample_property):
    await _create_booking(test_client, sample_property.id, key="reused-key")
    response = await _create_booking(test_client, sample_property.id, key="reused-key", guests=3)

    assert response.status_code == 422
    assert response.json()["code"] == "IDEMPOTENCY_KEY_MISMATCH"


@pytest.mark.asyncio
async def test_create_booking_missing_idempotency_key(test_client, sample_property):
    response = await test_client.post("/v1/booking/create", json=_booking_payload(sample_property.id))

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_booking_dates_unavailable(test_client, sample_property):
    await _create_booking(test_client, sample_property.id, key="first")
    response = await _create_booking(test_client, sample_property.id, key="second")

    assert response.status_code == 409
    assert response.json()["code"] == "DATES_UNAVAILABLE"


@pytest.mark.asyncio
async def test_create_booking_too_many_guests(test_client, sample_property):
    response = await _create_booking(test_client, sample_property.id, guests=6)

    assert response.status_code == 400
    assert response.json()["code"] == "TOO_MANY_GUESTS"


@pytest.mark.asyncio
async def test_create_booking_ineligible_plan(test_client, sample_property):
    response = await _create_booking(
        test_client, sample_property.id, check_in=date.today() + timedelta(days=30), payment_plan="two_payment"
    )

    assert response.status_code == 409
    assert response.json()["code"] == "PLAN_NOT_ELIGIBLE"


@pytest.mark.asyncio
async def test_get_and_cancel_booking(test_client, sample_property):
    booking = (await _create_booking(test_client, sample_property.id)).json()

    fetched = await test_client.post("/v1/booking/get", json={"booking_id": booking["id"]})
    assert fetched.status_code == 200
    assert fetched.json()["code"] == booking["code"]

    cancelled = await test_client.post("/v1/booking/cancel", json={"booking_id": booking["id"], "reason": "Plans changed"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    rebooked = await _create_booking(test_client, sample_property.id, key="after-cancel")
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_get_unknown_booking(test_client):
    response = await test_client.post("/v1/booking/get", json={"booking_id": 999})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_schedule_and_charge_endpoints(test_client, sample_property, auth_headers, gateway):
    booking = (await _create_booking(test_client, sample_property.id, payment_plan="two_payment")).json()

    schedule = await test_client.post("/v1/payment-plan/schedule", json={"booking_id": booking["id"]})
    assert schedule.status_code == 200
    assert Decimal(schedule.json()["balance_due"]) == Decimal("465.20")

    charge = await test_client.post(
        "/v1/payment-plan/charge",
        json={"booking_id": booking["id"], "installment_number": 2},
        headers={**auth_headers, "Idempotency-Key": "charge-1"},
    )
    assert charge.status_code == 200
    assert charge.json()["outcome"] == "charged"
    assert len(gateway.charges) == 2

    again = await test_client.post(
        "/v1/payment-plan/charge",
        json={"booking_id": booking["id"], "installment_number": 2},
        headers={**auth_headers, "Idempotency-Key": "charge-2"},
    )
    assert again.json()["outcome"] == "already_processed"
    assert len(gateway.charges) == 2


@pytest.mark.asyncio
async def test_charge_requires_auth(test_client, sample_property):
    response = await test_client.post(
        "/v1/payment-plan/charge",
        json={"booking_id": 1, "installment_number": 2},
        headers={"Idempotency-Key": "charge-1"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_declined_charge_returns_402(test_app, test_client, sample_property, auth_headers):
    booking = (await _create_booking(test_client, sample_property.id, payment_plan="two_payment")).json()
    test_app.dependency_overrides[get_payment_gateway] = lambda: FakeGateway(fail_with="Your card was declined.")

    response = await test_client.post(
        "/v1/payment-plan/charge",
        json={"booking_id": booking["id"], "installment_number": 2},
        headers={**auth_headers, "Idempotency-Key": "charge-declined"},
    )

    assert response.status_code == 402
    data = response.json()
    assert data["code"] == "GATEWAY_CHARGE_FAILED"
    assert data["gateway_message"] == "Your card was declined."

    schedule = await test_client.post("/v1/payment-plan/schedule", json={"booking_id": booking["id"]})
    assert schedule.json()["installments"][1]["status"] == "failed"
    assert schedule.json()["installments"][1]["failure_message"] == "Your card was declined."


@pytest.mark.asyncio
async def test_declined_upfront_charge_rejects_booking(test_app, test_client, sample_property, gateway):
    property_id = sample_property.id
    test_app.dependency_overrides[get_payment_gateway] = lambda: FakeGateway(fail_with="Your card was declined.")

    response = await _create_booking(test_client, property_id, key="declined-booking")

    assert response.status_code == 402
    data = response.json()
    assert data["code"] == "GATEWAY_CHARGE_FAILED"
    assert data["gateway_message"] == "Your card was declined."
    assert data["installment_number"] == 1
    assert (await test_client.post("/v1/booking/get", json={"booking_id": 1})).status_code == 404

    test_app.dependency_overrides[get_payment_gateway] = lambda: gateway
    retried = await _create_booking(test_client, property_id, key="retried-booking")
    assert retried.status_code == 201


@pytest.mark.asyncio
async def test_create_booking_requires_payment_method(test_client, sample_property, gateway):
    payload = _booking_payload(sample_property.id)
    del payload["payment_method_ref"]

    response = await test_client.post(
        "/v1/booking/create",
        json=payload,
        headers={"Idempotency-Key": "no-method"},
    )

    assert response.status_code == 422
    assert gateway.charges == []


@pytest.mark.asyncio
async def test_cohost_endpoints(test_client, sample_property, auth_headers):
    added = await test_client.post(
        "/v1/cohost/add",
        json={"property_id": sample_property.id, "split_type": "percentage", "split_value": "0.25", "account_ref": "acct_1"},
        headers=auth_headers,
    )
    assert added.status_code == 201
    cohost = added.json()

    booking = (await _create_booking(test_client, sample_property.id)).json()
    split = await test_client.post("/v1/cohost/split", json={"booking_id": booking["id"]})
    assert split.status_code == 200
    assert Decimal(split.json()["transferable_base"]) == Decimal("730.40")
    assert Decimal(split.json()["splits"][0]["amount"]) == Decimal("182.60")

    removed = await test_client.post("/v1/cohost/remove", json={"cohost_id": cohost["id"]}, headers=auth_headers)
    assert removed.json()["is_active"] is False

    listed = await test_client.post("/v1/cohost/list", json={"property_id": sample_property.id})
    assert listed.json()["cohosts"] == []


@pytest.mark.asyncio
async def test_add_cohost_invalid_split(test_client, sample_property, auth_headers):
    response = await test_client.post(
        "/v1/cohost/add",
        json={"property_id": sample_property.id, "split_type": "percentage", "split_value": "1.5"},
        headers=auth_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_calendar_export_endpoint(test_client, sample_property):
    booking = (await _create_booking(test_client, sample_property.id)).json()

    response = await test_client.get(f"/v1/calendar/{sample_property.id}.ics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/calendar")
    assert "BEGIN:VCALENDAR" in response.text
    assert f"str-booking-{booking['id']}@" in response.text


@pytest.mark.asyncio
async def test_calendar_feed_requires_auth(test_client, sample_property):
    response = await test_client.post(
        "/v1/calendar/feeds/add",
        json={"property_id": sample_property.id, "feed_url": "https://www.airbnb.com/calendar/ical/1.ics"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_add_calendar_feed_endpoint(test_client, sample_property, auth_headers):
    response = await test_client.post(
        "/v1/calendar/feeds/add",
        json={
            "property_id": sample_property.id,
            "feed_url": "https://www.airbnb.com/calendar/ical/1.ics",
            "platform": "airbnb",
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["sync_status"] == "pending"
    assert data["platform"] == "airbnb"


@pytest.mark.asyncio
async def test_metrics_endpoint(test_client, sample_property):
    await test_client.post(
        "/v1/pricing/quote",
        json={
            "property_id": sample_property.id,
            "check_in": CHECK_IN.isoformat(),
            "check_out": (CHECK_IN + timedelta(days=2)).isoformat(),
        },
    )

    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "pricing_quotes_calculated_total" in response.text
