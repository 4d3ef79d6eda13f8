"""
Tour endpoints: generic CRUD plus aliases, aggregates, geo queries and
image upload. Fixed paths are declared before `/{id}`.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.api import handler_factory as factory
from tourbook.api.deps import restrict_to
from tourbook.api.routes import reviews
from tourbook.core.errors import NotFoundError
from tourbook.db.session import get_db
from tourbook.repositories.tours import TourRepository
from tourbook.schemas.tour import (
    MonthlyPlan,
    TourCreate,
    TourDetailResponse,
    TourDistance,
    TourResponse,
    TourStats,
    TourUpdate,
)
from tourbook.services import image_service, tour_service
from tourbook.services.cache_service import invalidate_tour_cache

router = APIRouter(prefix="/tours", tags=["Tours"])
router.include_router(reviews.router, prefix="/{tour_id}/reviews")

TOUR_MANAGERS = ("admin", "lead-guide")
TOP_CHEAP = {
    "limit": "5",
    "sort": "-ratings_average,price",
    "fields": "name,price,ratings_average,summary,difficulty",
}

factory.collection_route(router, "GET", factory.get_all(TourRepository, TourResponse))
router.get("/top-5-cheap")(factory.get_all(TourRepository, TourResponse, overrides=TOP_CHEAP))


@router.get("/tour-stats")
async def tour_stats(db: AsyncSession = Depends(get_db)):
    """Rating and price statistics per difficulty for well-rated tours."""
    stats = await tour_service.get_tour_stats(db)
    return {"status": "success", "data": {"stats": [TourStats.model_validate(row) for row in stats]}}


@router.get(
    "/monthly-plan/{year}",
    dependencies=[Depends(restrict_to("admin", "lead-guide", "guide"))],
)
async def monthly_plan(year: int, db: AsyncSession = Depends(get_db)):
    plan = await tour_service.get_monthly_plan(db, year)
    return {"status": "success", "data": {"plan": [MonthlyPlan.model_validate(month) for month in plan]}}


@router.get("/tours-within/{distance}/center/{latlng}/unit/{unit}")
async def tours_within(
    distance: float,
    latlng: str,
    unit: tour_service.Unit,
    db: AsyncSession = Depends(get_db),
):
    """Tours starting within `distance` of `lat,lng`, e.g. /tours-within/400/center/34.1,-118.1/unit/mi."""
    tours = await tour_service.get_tours_within(db, distance, latlng, unit)
    docs = [factory.serialize(TourResponse, tour) for tour in tours]
    return {"status": "success", "results": len(docs), "data": {"docs": docs}}


@router.get("/distances/{latlng}/unit/{unit}")
async def distances(latlng: str, unit: tour_service.Unit, db: AsyncSession = Depends(get_db)):
    data = await tour_service.get_distances(db, latlng, unit)
    return {"status": "success", "data": {"data": [TourDistance.model_validate(row) for row in data]}}


factory.collection_route(
    router,
    "POST",
    factory.create_one(TourRepository, TourCreate, TourResponse, on_change=invalidate_tour_cache),
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(restrict_to(*TOUR_MANAGERS))],
)
router.get("/{id}")(factory.get_one(TourRepository, TourDetailResponse, expand=("reviews",)))
router.patch(
    "/{id}",
    dependencies=[Depends(restrict_to(*TOUR_MANAGERS))],
)(factory.update_one(TourRepository, TourUpdate, TourResponse, on_change=invalidate_tour_cache))
router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(restrict_to(*TOUR_MANAGERS))],
)(factory.delete_one(TourRepository, on_change=invalidate_tour_cache))


@router.patch("/{id}/images", dependencies=[Depends(restrict_to(*TOUR_MANAGERS))])
async def upload_tour_images(
    id: int,
    image_cover: Optional[UploadFile] = File(None),
    images: list[UploadFile] = File([]),
    db: AsyncSession = Depends(get_db),
):
    """Replace the cover and/or gallery (max 3) with resized uploads."""
    repo = TourRepository(db)
    tour = await repo.find_by_id(id)
    if tour is None:
        raise NotFoundError(f"No document found with that ID: {id}")

    update = await image_service.process_tour_images(tour.id, image_cover, images)
    tour = await repo.save(tour, update)
    await invalidate_tour_cache()
    return factory.document_response(factory.serialize(TourResponse, tour))
