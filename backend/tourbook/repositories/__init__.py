from tourbook.repositories.base import Repository, SQLAlchemyRepository
from tourbook.repositories.bookings import BookingRepository
from tourbook.repositories.reviews import ReviewRepository
from tourbook.repositories.tours import TourRepository
from tourbook.repositories.users import UserRepository

__all__ = [
    "Repository",
    "SQLAlchemyRepository",
    "TourRepository",
    "UserRepository",
    "ReviewRepository",
    "BookingRepository",
]
