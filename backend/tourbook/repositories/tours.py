"""
Tour persistence: secret tours are hidden from every default lookup, the
slug is derived from the name and the start point is mirrored into plain
lat/lng columns for the geo queries.
"""

import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from tourbook.core.errors import AppError
from tourbook.models.tour import Tour
from tourbook.models.user import User
from tourbook.repositories.base import SQLAlchemyRepository


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated, no special characters."""
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    return re.sub(r"-+", "-", slug).strip("-")


def round_rating(value: float) -> float:
    return round(value * 10) / 10


class TourRepository(SQLAlchemyRepository[Tour]):
    model = Tour
    expansions = {"reviews": selectinload(Tour.reviews)}

    def scope(self) -> list:
        return [Tour.secret_tour.is_(False)]

    async def find_by_slug(self, slug: str, expand=()) -> Optional[Tour]:
        statement = self.base_query(Tour.slug == slug).options(*self._expansion_options(expand))
        result = await self.db.execute(statement)
        return result.scalars().first()

    async def _resolve_guides(self, guide_ids: list[int]) -> list[User]:
        if not guide_ids:
            return []
        unique_ids = list(dict.fromkeys(guide_ids))
        result = await self.db.execute(
            select(User).where(User.id.in_(unique_ids), User.active.is_(True)).order_by(User.id)
        )
        guides = list(result.scalars().all())
        missing = set(unique_ids) - {guide.id for guide in guides}
        if missing:
            raise AppError(f"Invalid guides: {', '.join(str(i) for i in sorted(missing))}.", 400)
        return guides

    async def prepare(self, data: dict, entity: Optional[Tour] = None) -> dict:
        if "guides" in data:
            data["guides"] = await self._resolve_guides(data["guides"] or [])
        return data

    async def before_save(self, entity: Tour, is_new: bool) -> None:
        entity.slug = slugify(entity.name)
        if entity.ratings_average is not None:
            entity.ratings_average = round_rating(entity.ratings_average)

        point = entity.start_location or {}
        coordinates = point.get("coordinates") or []
        if len(coordinates) == 2:
            entity.start_lng, entity.start_lat = coordinates
        else:
            entity.start_lng = entity.start_lat = None
