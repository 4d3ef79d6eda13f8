"""
Tour aggregates and geo queries.

Statistics are computed in SQL. The monthly plan and the distance math run in
Python over the (small) tour table so they behave the same on PostgreSQL and
SQLite: start dates are a JSON list and the start point is a plain lat/lng
pair, so neither needs database-specific array or geo extensions.
"""

import math
from collections import defaultdict
from datetime import datetime
from typing import Literal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core.errors import AppError
from tourbook.models.tour import Tour
from tourbook.services import cache_service

Unit = Literal["mi", "km"]

EARTH_RADIUS_MI = 3963.2
EARTH_RADIUS_KM = 6378.1
METERS_TO_UNIT = {"mi": 0.000621371, "km": 0.001}
STATS_MIN_RATING = 4.5
MAX_PLAN_MONTHS = 12


def parse_latlng(latlng: str) -> tuple[float, float]:
    lat, _, lng = latlng.partition(",")
    try:
        lat_value, lng_value = float(lat), float(lng)
    except ValueError:
        raise AppError("Please provide latitude and longitude in the format lat,lng.", 400)
    if not (-90 <= lat_value <= 90 and -180 <= lng_value <= 180):
        raise AppError("Please provide latitude and longitude in the format lat,lng.", 400)
    return lat_value, lng_value


def angular_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points, in radians (haversine)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(a)))


async def get_tour_stats(db: AsyncSession) -> list[dict]:
    cached = await cache_service.get_cached(cache_service.tour_stats_key())
    if cached is not None:
        return cached

    difficulty = func.upper(Tour.difficulty)
    statement = (
        select(
            difficulty.label("difficulty"),
            func.count(Tour.id).label("num_tours"),
            func.sum(Tour.ratings_quantity).label("num_ratings"),
            func.avg(Tour.ratings_average).label("avg_rating"),
            func.avg(Tour.price).label("avg_price"),
            func.min(Tour.price).label("min_price"),
            func.max(Tour.price).label("max_price"),
        )
        .where(Tour.ratings_average >= STATS_MIN_RATING, Tour.secret_tour.is_(False))
        .group_by(difficulty)
        .order_by(func.avg(Tour.price))
    )
    result = await db.execute(statement)
    stats = [
        {
            "difficulty": row.difficulty,
            "num_tours": row.num_tours,
            "num_ratings": int(row.num_ratings or 0),
            "avg_rating": round(float(row.avg_rating), 2),
            "avg_price": round(float(row.avg_price), 2),
            "min_price": float(row.min_price),
            "max_price": float(row.max_price),
        }
        for row in result
    ]

    await cache_service.set_cached(cache_service.tour_stats_key(), stats)
    return stats


async def get_monthly_plan(db: AsyncSession, year: int) -> list[dict]:
    """Per month of `year`: how many tour start dates fall in it and which tours."""
    key = cache_service.monthly_plan_key(year)
    cached = await cache_service.get_cached(key)
    if cached is not None:
        return cached

    result = await db.execute(
        select(Tour.name, Tour.start_dates).where(Tour.secret_tour.is_(False)).order_by(Tour.id)
    )
    starts: dict[int, list[str]] = defaultdict(list)
    for name, start_dates in result:
        for raw in start_dates or []:
            start = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            if start.year == year:
                starts[start.month].append(name)

    plan = [
        {"month": month, "num_tour_starts": len(names), "tours": names}
        for month, names in starts.items()
    ]
    plan.sort(key=lambda item: (-item["num_tour_starts"], item["month"]))
    plan = plan[:MAX_PLAN_MONTHS]

    await cache_service.set_cached(key, plan)
    return plan


async def _located_tours(db: AsyncSession, *criteria) -> list[Tour]:
    result = await db.execute(
        select(Tour)
        .where(Tour.secret_tour.is_(False), Tour.start_lat.is_not(None), Tour.start_lng.is_not(None), *criteria)
        .order_by(Tour.id)
    )
    return list(result.scalars().all())


async def get_tours_within(db: AsyncSession, distance: float, latlng: str, unit: Unit) -> list[Tour]:
    """Tours whose start point lies within `distance` (miles or km) of `latlng`."""
    if distance <= 0:
        raise AppError(f"Invalid distance: {distance}.", 400)
    lat, lng = parse_latlng(latlng)
    radius = distance / (EARTH_RADIUS_MI if unit == "mi" else EARTH_RADIUS_KM)

    # Latitude band prefilter; the exact check is the haversine below
    band = math.degrees(radius)
    candidates = await _located_tours(db, Tour.start_lat.between(lat - band, lat + band))
    return [
        tour for tour in candidates
        if angular_distance(lat, lng, tour.start_lat, tour.start_lng) <= radius
    ]


async def get_distances(db: AsyncSession, latlng: str, unit: Unit) -> list[dict]:
    """Distance from `latlng` to every located tour, nearest first."""
    lat, lng = parse_latlng(latlng)
    multiplier = METERS_TO_UNIT[unit]
    earth_radius_m = EARTH_RADIUS_KM * 1000

    distances = [
        {
            "id": tour.id,
            "name": tour.name,
            "distance": round(angular_distance(lat, lng, tour.start_lat, tour.start_lng) * earth_radius_m * multiplier, 3),
        }
        for tour in await _located_tours(db)
    ]
    distances.sort(key=lambda item: item["distance"])
    return distances
