"""
Review persistence. Every write or delete recomputes the parent tour's
rating count and average from the reviews that remain.
"""

from typing import Optional

from sqlalchemy import func, select

from tourbook.core.logging import get_logger
from tourbook.models.review import Review
from tourbook.models.tour import DEFAULT_RATINGS_AVERAGE, Tour
from tourbook.models.user import User
from tourbook.repositories.base import SQLAlchemyRepository
from tourbook.repositories.tours import round_rating

logger = get_logger(__name__)


class ReviewRepository(SQLAlchemyRepository[Review]):
    model = Review

    async def prepare(self, data: dict, entity: Optional[Review] = None) -> dict:
        if "tour" in data:
            data["tour_id"] = await self.require(Tour, data.pop("tour"), "tour")
        if "user" in data:
            data["user_id"] = await self.require(User, data.pop("user"), "user")
        return data

    async def calc_average_ratings(self, tour_id: int) -> None:
        """Recompute ratings_quantity/ratings_average for one tour, secret or not."""
        result = await self.db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(Review.tour_id == tour_id)
        )
        count, average = result.one()

        tour = await self.db.get(Tour, tour_id)
        if tour is None:
            return
        if count:
            tour.ratings_quantity = count
            tour.ratings_average = round_rating(float(average))
        else:
            tour.ratings_quantity = 0
            tour.ratings_average = DEFAULT_RATINGS_AVERAGE
        await self.db.flush()
        logger.debug("tour_ratings_recomputed", tour_id=tour_id, count=count)

    async def after_write(self, entity: Review) -> None:
        await self.calc_average_ratings(entity.tour_id)

    async def after_delete(self, entity: Review) -> None:
        await self.calc_average_ratings(entity.tour_id)
