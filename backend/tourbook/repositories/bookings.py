from typing import Optional

from tourbook.models.booking import Booking
from tourbook.models.tour import Tour
from tourbook.models.user import User
from tourbook.repositories.base import SQLAlchemyRepository


class BookingRepository(SQLAlchemyRepository[Booking]):
    model = Booking

    async def prepare(self, data: dict, entity: Optional[Booking] = None) -> dict:
        if "tour" in data:
            data["tour_id"] = await self.require(Tour, data.pop("tour"), "tour")
        if "user" in data:
            data["user_id"] = await self.require(User, data.pop("user"), "user")
        return data

    async def find_for_user(self, user_id: int) -> list[Booking]:
        result = await self.db.execute(self.base_query(Booking.user_id == user_id).order_by(Booking.id))
        return list(result.scalars().all())
