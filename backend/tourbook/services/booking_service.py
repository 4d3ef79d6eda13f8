"""
Payment flow: Stripe Checkout Sessions out, checkout webhooks in.

A booking is only ever created from a verified `checkout.session.completed`
event (or by an admin through the CRUD routes), never from the success URL.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core.config import get_settings
from tourbook.core.errors import AppError, NotFoundError
from tourbook.core.logging import get_logger
from tourbook.core.metrics import record_booking, record_webhook_event
from tourbook.infrastructure.stripe_client import StripeClient, StripeError
from tourbook.models.booking import Booking
from tourbook.models.user import User
from tourbook.repositories.bookings import BookingRepository
from tourbook.repositories.tours import TourRepository
from tourbook.repositories.users import UserRepository

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


async def create_checkout_session(
    db: AsyncSession,
    stripe: StripeClient,
    tour_id: int,
    user: User,
    base_url: str,
) -> dict:
    tour = await TourRepository(db).find_by_id(tour_id)
    if tour is None:
        raise NotFoundError(f"No tour found with that ID: {tour_id}")

    settings = get_settings()
    base_url = base_url.rstrip("/")
    try:
        session = await stripe.create_checkout_session(
            payment_method_types=["card"],
            mode="payment",
            success_url=f"{base_url}/my-tours?alert=booking",
            cancel_url=f"{base_url}/tour/{tour.slug}",
            customer_email=user.email,
            client_reference_id=str(tour.id),
            line_items=[
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": "usd",
                        "unit_amount": int(round(tour.price * 100)),
                        "product_data": {
                            "name": f"{tour.name} Tour",
                            "description": tour.summary,
                            "images": [f"{settings.PUBLIC_IMAGE_BASE_URL}/{tour.image_cover}"],
                        },
                    },
                }
            ],
        )
    except StripeError as e:
        raise AppError(f"Payment provider error: {e}", 502)

    logger.info("checkout_session_created", tour_id=tour.id, user_id=user.id, session_id=session.get("id"))
    return session


async def create_booking_from_session(db: AsyncSession, session: dict) -> Booking:
    tour_id = int(session["client_reference_id"])
    user = await UserRepository(db).find_by_email(session["customer_email"])
    if user is None:
        raise NotFoundError(f"No user found with that email: {session['customer_email']}")

    booking = await BookingRepository(db).create(
        {"tour": tour_id, "user": user.id, "price": session["amount_total"] / 100}
    )
    record_booking("webhook")
    logger.info("booking_created", booking_id=booking.id, tour_id=tour_id, user_id=user.id, source="webhook")
    return booking


async def handle_webhook_event(db: AsyncSession, event: dict) -> None:
    """
    Process a verified event. Failures are logged and swallowed: the provider
    only needs to know the event was received.
    """
    event_type = event.get("type", "unknown")
    if event_type != CHECKOUT_COMPLETED:
        record_webhook_event(event_type, "ignored")
        logger.debug("webhook_event_ignored", event_type=event_type)
        return

    session = event.get("data", {}).get("object", {})
    try:
        await create_booking_from_session(db, session)
    except (AppError, SQLAlchemyError, KeyError, TypeError, ValueError) as e:
        await db.rollback()
        record_webhook_event(event_type, "failed")
        logger.error("webhook_processing_failed", event_id=event.get("id"), event_type=event_type, error=str(e))
        return

    record_webhook_event(event_type, "processed")
