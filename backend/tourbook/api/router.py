"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from tourbook.api.routes import bookings, reviews, tours, users
from tourbook.core.config import get_settings

api_router = APIRouter(prefix=get_settings().API_V1_STR)
api_router.include_router(tours.router)
api_router.include_router(users.router)
api_router.include_router(reviews.router, prefix="/reviews")
api_router.include_router(bookings.router)
