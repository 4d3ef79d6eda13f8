"""
Booking endpoints: Stripe checkout for the current user, CRUD for staff.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.api import handler_factory as factory
from tourbook.api.deps import base_url, protect, restrict_to
from tourbook.core.metrics import record_booking
from tourbook.db.session import get_db
from tourbook.infrastructure.stripe_client import StripeClient, get_stripe_client
from tourbook.models.user import User
from tourbook.repositories.bookings import BookingRepository
from tourbook.schemas.booking import BookingCreate, BookingResponse, BookingUpdate
from tourbook.services import booking_service

router = APIRouter(prefix="/bookings", tags=["Bookings"], dependencies=[Depends(protect)])
staff_only = [Depends(restrict_to("admin", "lead-guide"))]


async def _count_admin_booking() -> None:
    record_booking("admin")


@router.get("/checkout-session/{tour_id}")
async def get_checkout_session(
    tour_id: int,
    request: Request,
    user: User = Depends(protect),
    stripe: StripeClient = Depends(get_stripe_client),
    db: AsyncSession = Depends(get_db),
):
    """Create a Stripe Checkout Session for booking `tour_id`."""
    session = await booking_service.create_checkout_session(db, stripe, tour_id, user, base_url(request))
    return {"status": "success", "session": session}


factory.collection_route(router, "GET", factory.get_all(BookingRepository, BookingResponse), dependencies=staff_only)
factory.collection_route(
    router,
    "POST",
    factory.create_one(BookingRepository, BookingCreate, BookingResponse, on_change=_count_admin_booking),
    status_code=status.HTTP_201_CREATED,
    dependencies=staff_only,
)
router.get("/{id}", dependencies=staff_only)(factory.get_one(BookingRepository, BookingResponse))
router.patch("/{id}", dependencies=staff_only)(factory.update_one(BookingRepository, BookingUpdate, BookingResponse))
router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=staff_only,
)(factory.delete_one(BookingRepository))
