"""
Server-rendered pages. Every page knows the (optional) current user; account
pages require one.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.api.deps import is_logged_in, parse_body, protect
from tourbook.core.errors import AppError
from tourbook.core.templating import templates
from tourbook.db.session import get_db
from tourbook.models.tour import Tour
from tourbook.models.user import User
from tourbook.repositories.bookings import BookingRepository
from tourbook.repositories.tours import TourRepository
from tourbook.schemas.user import UpdateMeRequest
from tourbook.services import auth_service

router = APIRouter(tags=["Views"], include_in_schema=False)

ALERTS = {
    "booking": (
        "Your booking was successful! Please check your email for a confirmation. "
        "If your booking doesn't show up here immediately, please come back later."
    ),
}


def render(request: Request, template: str, user: Optional[User], **context):
    context.update(user=user, alert=ALERTS.get(request.query_params.get("alert", "")))
    return templates.TemplateResponse(request, template, context)


@router.get("/")
async def overview(
    request: Request,
    user: Optional[User] = Depends(is_logged_in),
    db: AsyncSession = Depends(get_db),
):
    tours, _ = await TourRepository(db).find_all({})
    return render(request, "overview.html", user, title="All Tours", tours=tours)


@router.get("/tour/{slug}")
async def tour_detail(
    slug: str,
    request: Request,
    user: Optional[User] = Depends(is_logged_in),
    db: AsyncSession = Depends(get_db),
):
    tour = await TourRepository(db).find_by_slug(slug, expand=("reviews",))
    if tour is None:
        raise AppError("There is no tour with that name.", 404)
    return render(request, "tour.html", user, title=f"{tour.name} Tour", tour=tour)


@router.get("/login")
async def login_form(request: Request, user: Optional[User] = Depends(is_logged_in)):
    return render(request, "login.html", user, title="Log into your account")


@router.get("/me")
async def account(request: Request, user: User = Depends(protect)):
    return render(request, "account.html", user, title="Your account")


@router.get("/my-tours")
async def my_tours(request: Request, user: User = Depends(protect), db: AsyncSession = Depends(get_db)):
    bookings = await BookingRepository(db).find_for_user(user.id)
    tour_ids = list(dict.fromkeys(booking.tour_id for booking in bookings))
    tours = []
    if tour_ids:
        tours, _ = await TourRepository(db).find_all({}, Tour.id.in_(tour_ids))
    return render(request, "overview.html", user, title="My Tours", tours=tours)


@router.post("/submit-user-data")
async def submit_user_data(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    user: User = Depends(protect),
    db: AsyncSession = Depends(get_db),
):
    data = parse_body(UpdateMeRequest, {"name": name, "email": email})
    user = await auth_service.update_me(db, user, data)
    return render(request, "account.html", user, title="Your account")
