"""
Tests for Stripe checkout sessions and staff booking management.
"""

from urllib.parse import parse_qs

import httpx
import pytest
from httpx import AsyncClient

from tourbook.infrastructure.stripe_client import StripeClient, get_stripe_client
from tourbook.main import app

from conftest import auth_headers_for


@pytest.fixture
def stripe_requests():
    """Route Stripe calls to an in-process mock and record what was sent."""
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        if request.url.path.endswith("/checkout/sessions"):
            return httpx.Response(200, json={"id": "cs_test_123", "url": "https://checkout.stripe.test/cs_test_123"})
        return httpx.Response(404, json={"error": {"message": "Unrecognized request URL"}})

    app.dependency_overrides[get_stripe_client] = lambda: StripeClient(
        "sk_test_123", transport=httpx.MockTransport(handler)
    )
    return captured


@pytest.mark.asyncio
async def test_checkout_session(client: AsyncClient, auth_headers, test_tour, stripe_requests):
    """The session is built from the tour and the current user."""
    response = await client.get(f"/api/v1/bookings/checkout-session/{test_tour.id}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "status": "success",
        "session": {"id": "cs_test_123", "url": "https://checkout.stripe.test/cs_test_123"},
    }

    request = stripe_requests[0]
    assert request.method == "POST"
    assert request.headers["Authorization"].startswith("Basic ")
    form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
    assert form["mode"] == "payment"
    assert form["payment_method_types[0]"] == "card"
    assert form["customer_email"] == "test@example.com"
    assert form["client_reference_id"] == str(test_tour.id)
    assert form["success_url"] == "http://test/my-tours?alert=booking"
    assert form["cancel_url"] == "http://test/tour/the-forest-hiker"
    assert form["line_items[0][quantity]"] == "1"
    assert form["line_items[0][price_data][unit_amount]"] == "39700"
    assert form["line_items[0][price_data][currency]"] == "usd"
    assert form["line_items[0][price_data][product_data][name]"] == "The Forest Hiker Tour"


@pytest.mark.asyncio
async def test_checkout_session_unknown_tour(client: AsyncClient, auth_headers, stripe_requests):
    response = await client.get("/api/v1/bookings/checkout-session/9999", headers=auth_headers)

    assert response.status_code == 404
    assert stripe_requests == []


@pytest.mark.asyncio
async def test_checkout_session_provider_error(client: AsyncClient, auth_headers, test_tour):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid API Key provided"}})

    app.dependency_overrides[get_stripe_client] = lambda: StripeClient("sk_bad", transport=httpx.MockTransport(handler))

    response = await client.get(f"/api/v1/bookings/checkout-session/{test_tour.id}", headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["message"] == "Payment provider error: Invalid API Key provided"


@pytest.mark.asyncio
async def test_checkout_requires_login(client: AsyncClient, test_tour):
    client.cookies.clear()

    response = await client.get(f"/api/v1/bookings/checkout-session/{test_tour.id}")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_staff_booking_crud(client: AsyncClient, lead_guide, test_user, test_tour):
    headers = auth_headers_for(lead_guide)

    created = await client.post(
        "/api/v1/bookings/",
        json={"tour": test_tour.id, "user": test_user.id, "price": 397},
        headers=headers,
    )
    assert created.status_code == 201
    doc = created.json()["data"]["doc"]
    assert doc["tour"] == {"id": test_tour.id, "name": "The Forest Hiker", "slug": "the-forest-hiker"}
    assert doc["user"]["email"] == "test@example.com"
    assert doc["paid"] is True

    listing = await client.get("/api/v1/bookings/", headers=headers)
    assert listing.json()["results"] == 1

    updated = await client.patch(f"/api/v1/bookings/{doc['id']}", json={"paid": False}, headers=headers)
    assert updated.json()["data"]["doc"]["paid"] is False

    deleted = await client.delete(f"/api/v1/bookings/{doc['id']}", headers=headers)
    assert deleted.status_code == 204

    missing = await client.get(f"/api/v1/bookings/{doc['id']}", headers=headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_booking_references_must_exist(client: AsyncClient, admin_headers, test_user):
    response = await client.post(
        "/api/v1/bookings/",
        json={"tour": 9999, "user": test_user.id, "price": 100},
        headers=admin_headers,
    )

    assert response.status_code == 404
    assert response.json()["message"] == "No tour found with that ID: 9999"


@pytest.mark.asyncio
async def test_regular_user_cannot_manage_bookings(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/bookings/", headers=auth_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_booking_update_rejects_null_price(client: AsyncClient, admin_headers, test_user, test_tour):
    created = await client.post(
        "/api/v1/bookings",
        json={"tour": test_tour.id, "user": test_user.id, "price": 397},
        headers=admin_headers,
    )
    assert created.status_code == 201
    booking_id = created.json()["data"]["doc"]["id"]

    response = await client.patch(f"/api/v1/bookings/{booking_id}", json={"price": None}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid input data. price cannot be null"
