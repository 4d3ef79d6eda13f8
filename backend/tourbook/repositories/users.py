"""
User persistence. Deactivated users are invisible to every default lookup;
credential columns are never filterable or sortable from a query string.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select

from tourbook.core.security import hash_password
from tourbook.models.review import Review
from tourbook.models.user import User
from tourbook.repositories.base import SQLAlchemyRepository
from tourbook.repositories.reviews import ReviewRepository

HIDDEN_FIELDS = (
    "password",
    "password_changed_at",
    "password_reset_token",
    "password_reset_expires",
    "active",
)


class UserRepository(SQLAlchemyRepository[User]):
    model = User
    hidden_fields = HIDDEN_FIELDS

    def __init__(self, db):
        super().__init__(db)
        self._reviewed_tours: list[int] = []

    def scope(self) -> list:
        return [User.active.is_(True)]

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self.find_one(User.email == email.lower())

    async def find_by_reset_token(self, hashed_token: str) -> Optional[User]:
        return await self.find_one(
            User.password_reset_token == hashed_token,
            User.password_reset_expires > datetime.now(timezone.utc),
        )

    async def find_any_by_id(self, user_id: int) -> Optional[User]:
        """Lookup that ignores the active scope."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def prepare(self, data: dict, entity: Optional[User] = None) -> dict:
        data.pop("password_confirm", None)
        if "email" in data and data["email"]:
            data["email"] = data["email"].lower()
        if data.get("password"):
            data["password"] = hash_password(data["password"])
            if entity is not None:
                # One second back so a token issued in the same second still passes
                data["password_changed_at"] = datetime.now(timezone.utc) - timedelta(seconds=1)
                data["password_reset_token"] = None
                data["password_reset_expires"] = None
        return data

    async def before_delete(self, entity: User) -> None:
        # The user's reviews go with the row
        result = await self.db.execute(select(Review.tour_id).where(Review.user_id == entity.id).distinct())
        self._reviewed_tours = list(result.scalars().all())

    async def after_delete(self, entity: User) -> None:
        reviews = ReviewRepository(self.db)
        for tour_id in self._reviewed_tours:
            await reviews.calc_average_ratings(tour_id)
        self._reviewed_tours = []
