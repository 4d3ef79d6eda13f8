"""
Tests for the Stripe checkout webhook: signature verification and booking creation.
"""

import json
import time

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from tourbook.core.config import get_settings
from tourbook.infrastructure.stripe_client import (
    StripeSignatureError,
    sign_payload,
    verify_webhook_signature,
)
from tourbook.models.booking import Booking


def checkout_event(tour_id: int, email: str, amount_total: int = 39700, event_type: str = "checkout.session.completed") -> bytes:
    event = {
        "id": "evt_test_1",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_1",
                "client_reference_id": str(tour_id),
                "customer_email": email,
                "amount_total": amount_total,
            }
        },
    }
    return json.dumps(event).encode()


async def post_event(client: AsyncClient, payload: bytes, signature: str = None):
    if signature is None:
        signature = sign_payload(payload, get_settings().STRIPE_WEBHOOK_SECRET)
    return await client.post(
        "/webhook-checkout",
        content=payload,
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


async def all_bookings(session_factory) -> list[Booking]:
    async with session_factory() as session:
        result = await session.execute(select(Booking))
        return list(result.scalars().all())


def test_verify_signature_round_trip():
    payload = b'{"type": "ping"}'
    header = sign_payload(payload, "whsec_unit")

    assert verify_webhook_signature(payload, header, "whsec_unit") == {"type": "ping"}
    with pytest.raises(StripeSignatureError):
        verify_webhook_signature(payload, header, "whsec_other")


def test_verify_signature_rejects_stale_timestamp():
    payload = b"{}"
    header = sign_payload(payload, "whsec_unit", timestamp=int(time.time()) - 3600)

    with pytest.raises(StripeSignatureError, match="tolerance"):
        verify_webhook_signature(payload, header, "whsec_unit", tolerance=300)


def test_verify_signature_rejects_malformed_header():
    with pytest.raises(StripeSignatureError, match="Unable to extract"):
        verify_webhook_signature(b"{}", "garbage", "whsec_unit")


@pytest.mark.asyncio
async def test_completed_checkout_creates_booking(client: AsyncClient, session_factory, test_user, test_tour):
    """A verified checkout.session.completed event books the tour at the paid price."""
    response = await post_event(client, checkout_event(test_tour.id, "test@example.com"))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    bookings = await all_bookings(session_factory)
    assert len(bookings) == 1
    assert (bookings[0].tour_id, bookings[0].user_id, bookings[0].price) == (test_tour.id, test_user.id, 397.0)
    assert bookings[0].paid is True


@pytest.mark.asyncio
async def test_bad_signature_rejected(client: AsyncClient, session_factory, test_user, test_tour):
    payload = checkout_event(test_tour.id, "test@example.com")

    response = await post_event(client, payload, signature=sign_payload(payload, "whsec_wrong"))

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "fail"
    assert body["message"].startswith("Webhook error:")
    assert await all_bookings(session_factory) == []


@pytest.mark.asyncio
async def test_missing_signature_rejected(client: AsyncClient, test_tour):
    response = await client.post("/webhook-checkout", content=checkout_event(test_tour.id, "test@example.com"))

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_tampered_payload_rejected(client: AsyncClient, session_factory, test_user, test_tour):
    payload = checkout_event(test_tour.id, "test@example.com")
    signature = sign_payload(payload, get_settings().STRIPE_WEBHOOK_SECRET)

    response = await post_event(client, checkout_event(test_tour.id, "test@example.com", amount_total=100), signature)

    assert response.status_code == 400
    assert await all_bookings(session_factory) == []


@pytest.mark.asyncio
async def test_other_event_types_acknowledged(client: AsyncClient, session_factory, test_user, test_tour):
    payload = checkout_event(test_tour.id, "test@example.com", event_type="payment_intent.created")

    response = await post_event(client, payload)

    assert response.json() == {"received": True}
    assert await all_bookings(session_factory) == []


@pytest.mark.asyncio
async def test_unknown_customer_acknowledged_without_booking(client: AsyncClient, session_factory, test_tour):
    response = await post_event(client, checkout_event(test_tour.id, "stranger@example.com"))

    assert response.status_code == 200
    assert await all_bookings(session_factory) == []
