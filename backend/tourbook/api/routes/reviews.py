"""
Review endpoints. The same routes are mounted at /reviews and nested under
/tours/{tour_id}/reviews, where listing is scoped to the tour and creation
defaults to it.
"""

from fastapi import APIRouter, Depends, Request, status

from tourbook.api import handler_factory as factory
from tourbook.api.deps import protect, restrict_to
from tourbook.core.errors import AppError
from tourbook.models.review import Review
from tourbook.repositories.reviews import ReviewRepository
from tourbook.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from tourbook.services.cache_service import invalidate_tour_cache

router = APIRouter(tags=["Reviews"], dependencies=[Depends(protect)])


def _route_tour_id(request: Request):
    raw = request.path_params.get("tour_id")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise AppError(f"Invalid tour_id: {raw}.", 400)


def tour_scope(request: Request) -> list:
    tour_id = _route_tour_id(request)
    return [] if tour_id is None else [Review.tour_id == tour_id]


def review_defaults(request: Request, data: dict) -> dict:
    if "tour" not in data:
        tour_id = _route_tour_id(request)
        if tour_id is None:
            raise AppError("Review must belong to a tour.", 400)
        data["tour"] = tour_id
    data.setdefault("user", request.state.user.id)
    return data


factory.collection_route(router, "GET", factory.get_all(ReviewRepository, ReviewResponse, scope=tour_scope))
factory.collection_route(
    router,
    "POST",
    factory.create_one(ReviewRepository, ReviewCreate, ReviewResponse, defaults=review_defaults, on_change=invalidate_tour_cache),
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(restrict_to("user"))],
)
router.get("/{id}")(factory.get_one(ReviewRepository, ReviewResponse))
router.patch(
    "/{id}",
    dependencies=[Depends(restrict_to("user", "admin"))],
)(factory.update_one(ReviewRepository, ReviewUpdate, ReviewResponse, on_change=invalidate_tour_cache))
router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(restrict_to("user", "admin"))],
)(factory.delete_one(ReviewRepository, on_change=invalidate_tour_cache))
