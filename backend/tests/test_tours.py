"""
Tests for tour CRUD, aliases, aggregates, geo queries and image upload.
"""

import io

import pytest
from httpx import AsyncClient
from PIL import Image

from tourbook.models.tour import Tour

from conftest import auth_headers_for, create_tour, tour_payload

LOS_ANGELES = {"type": "Point", "coordinates": [-118.2437, 34.0522], "description": "Los Angeles, USA"}


def jpeg_bytes(size=(64, 48), color=(30, 120, 60)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.mark.asyncio
async def test_list_tours_envelope(client: AsyncClient, test_tour):
    response = await client.get("/api/v1/tours/")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["results"] == 1
    doc = body["data"]["docs"][0]
    assert doc["name"] == "The Forest Hiker"
    assert doc["duration_weeks"] == round(5 / 7, 2)
    assert "version" not in doc


@pytest.mark.asyncio
async def test_pagination_and_sort_through_api(client: AsyncClient, session_factory):
    """page=2&limit=10 sorted by price returns the 11th..20th cheapest tour."""
    for index in range(1, 26):
        await create_tour(session_factory, name=f"Paginated Tour {index:02d}", price=1000 - index)

    response = await client.get("/api/v1/tours/?page=2&limit=10&sort=price")

    prices = [doc["price"] for doc in response.json()["data"]["docs"]]
    assert prices == sorted(1000 - index for index in range(1, 26))[10:20]

    beyond = await client.get("/api/v1/tours/?page=9&limit=10")
    assert beyond.json()["results"] == 0


@pytest.mark.asyncio
async def test_filter_by_price_range(client: AsyncClient, session_factory):
    await create_tour(session_factory, name="Budget City Walker", price=150)
    await create_tour(session_factory, name="Premium Sea Explorer", price=1500)

    response = await client.get("/api/v1/tours/?price[gte]=1000")

    names = [doc["name"] for doc in response.json()["data"]["docs"]]
    assert names == ["Premium Sea Explorer"]


@pytest.mark.asyncio
async def test_unknown_filter_field_is_400(client: AsyncClient):
    response = await client.get("/api/v1/tours/?colour=red")

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid filter field: colour."


@pytest.mark.asyncio
async def test_field_projection(client: AsyncClient, test_tour):
    response = await client.get("/api/v1/tours/?fields=name,price")

    assert response.json()["data"]["docs"][0] == {"id": test_tour.id, "name": "The Forest Hiker", "price": 397.0}


@pytest.mark.asyncio
async def test_top_five_cheap(client: AsyncClient, session_factory):
    """Alias returns the best rated, then cheapest, five tours with a fixed projection."""
    for index in range(7):
        await create_tour(session_factory, name=f"Cheap Alias Tour {index}", price=100 + index, ratings_average=4.0 + index / 10)

    response = await client.get("/api/v1/tours/top-5-cheap")

    docs = response.json()["data"]["docs"]
    assert len(docs) == 5
    assert [doc["ratings_average"] for doc in docs] == [4.6, 4.5, 4.4, 4.3, 4.2]
    assert set(docs[0]) == {"id", "name", "price", "ratings_average", "summary", "difficulty"}


@pytest.mark.asyncio
async def test_get_tour_includes_reviews_and_guides(client: AsyncClient, session_factory, guide):
    tour = await create_tour(session_factory, guides=[guide.id])

    response = await client.get(f"/api/v1/tours/{tour.id}")

    assert response.status_code == 200
    doc = response.json()["data"]["doc"]
    assert doc["slug"] == "the-forest-hiker"
    assert doc["reviews"] == []
    assert doc["guides"][0]["name"] == "Tour Guide"
    assert "password" not in doc["guides"][0]


@pytest.mark.asyncio
async def test_missing_tour_is_404(client: AsyncClient, admin_headers):
    """Get, update and delete of an unknown id all return 404."""
    get = await client.get("/api/v1/tours/9999")
    patch = await client.patch("/api/v1/tours/9999", json={"price": 10}, headers=admin_headers)
    delete = await client.delete("/api/v1/tours/9999", headers=admin_headers)

    for response in (get, patch, delete):
        assert response.status_code == 404
        assert response.json()["message"] == "No document found with that ID: 9999"


@pytest.mark.asyncio
async def test_non_numeric_id_is_400(client: AsyncClient):
    response = await client.get("/api/v1/tours/abc")

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid id: abc."


@pytest.mark.asyncio
async def test_secret_tours_hidden(client: AsyncClient, session_factory):
    secret = await create_tour(session_factory, name="The Hidden Valley", secret_tour=True)

    listing = await client.get("/api/v1/tours/")
    detail = await client.get(f"/api/v1/tours/{secret.id}")

    assert listing.json()["results"] == 0
    assert detail.status_code == 404


@pytest.mark.asyncio
async def test_admin_creates_tour(client: AsyncClient, admin_headers, guide):
    response = await client.post(
        "/api/v1/tours/",
        json=tour_payload(name="The Snow Adventurer", guides=[guide.id], ratings_average=4.66),
        headers=admin_headers,
    )

    assert response.status_code == 201
    doc = response.json()["data"]["doc"]
    assert doc["slug"] == "the-snow-adventurer"
    assert doc["ratings_average"] == 4.7
    assert [g["id"] for g in doc["guides"]] == [guide.id]


@pytest.mark.asyncio
async def test_create_tour_validation(client: AsyncClient, admin_headers):
    short_name = await client.post("/api/v1/tours/", json=tour_payload(name="Short"), headers=admin_headers)
    bad_discount = await client.post(
        "/api/v1/tours/", json=tour_payload(price=100, price_discount=150), headers=admin_headers
    )
    bad_difficulty = await client.post(
        "/api/v1/tours/", json=tour_payload(difficulty="extreme"), headers=admin_headers
    )

    for response in (short_name, bad_discount, bad_difficulty):
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid input data.")
    assert "Discount price (150.0) should be below regular price" in bad_discount.json()["message"]


@pytest.mark.asyncio
async def test_create_tour_unknown_guide(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/tours/", json=tour_payload(guides=[4242]), headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid guides: 4242."


@pytest.mark.asyncio
async def test_duplicate_tour_name(client: AsyncClient, admin_headers, test_tour):
    response = await client.post("/api/v1/tours/", json=tour_payload(), headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"].startswith("Duplicate field value")


@pytest.mark.asyncio
async def test_regular_user_cannot_create_tour(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/tours/", json=tour_payload(), headers=auth_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_lead_guide_updates_tour(client: AsyncClient, lead_guide, test_tour):
    response = await client.patch(
        f"/api/v1/tours/{test_tour.id}",
        json={"name": "The Forest Wanderer", "price": 420},
        headers=auth_headers_for(lead_guide),
    )

    assert response.status_code == 200
    doc = response.json()["data"]["doc"]
    assert doc["slug"] == "the-forest-wanderer"
    assert doc["price"] == 420
    assert doc["duration"] == 5


@pytest.mark.asyncio
async def test_admin_deletes_tour(client: AsyncClient, admin_headers, test_tour, session_factory):
    response = await client.delete(f"/api/v1/tours/{test_tour.id}", headers=admin_headers)

    assert response.status_code == 204
    assert response.content == b""
    async with session_factory() as session:
        assert await session.get(Tour, test_tour.id) is None


@pytest.mark.asyncio
async def test_tour_stats(client: AsyncClient, session_factory):
    """Stats group well-rated tours by difficulty, cheapest group first."""
    await create_tour(session_factory, name="Easy Tour Number One", difficulty="easy", price=200, ratings_quantity=4)
    await create_tour(session_factory, name="Easy Tour Number Two", difficulty="easy", price=400, ratings_quantity=6)
    await create_tour(session_factory, name="Hard Tour Number One", difficulty="difficult", price=900)
    await create_tour(session_factory, name="Poorly Rated Journey", difficulty="medium", price=50, ratings_average=3.0)

    response = await client.get("/api/v1/tours/tour-stats")

    stats = response.json()["data"]["stats"]
    assert [row["difficulty"] for row in stats] == ["EASY", "DIFFICULT"]
    easy = stats[0]
    assert easy["num_tours"] == 2
    assert easy["num_ratings"] == 10
    assert easy["avg_price"] == 300
    assert (easy["min_price"], easy["max_price"]) == (200, 400)


@pytest.mark.asyncio
async def test_monthly_plan(client: AsyncClient, session_factory, guide):
    await create_tour(session_factory, name="Spring Season Hiker", start_dates=["2027-04-02T09:00:00Z", "2027-07-10T09:00:00Z"])
    await create_tour(session_factory, name="Summer Season Hiker", start_dates=["2027-07-01T09:00:00", "2028-07-01T09:00:00"])

    response = await client.get("/api/v1/tours/monthly-plan/2027", headers=auth_headers_for(guide))

    assert response.status_code == 200
    plan = response.json()["data"]["plan"]
    assert plan[0] == {"month": 7, "num_tour_starts": 2, "tours": ["Spring Season Hiker", "Summer Season Hiker"]}
    assert plan[1] == {"month": 4, "num_tour_starts": 1, "tours": ["Spring Season Hiker"]}


@pytest.mark.asyncio
async def test_monthly_plan_requires_staff(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/tours/monthly-plan/2027", headers=auth_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_tours_within_radius(client: AsyncClient, session_factory, test_tour):
    """The Banff start point is about 155 km from Calgary; Los Angeles is not."""
    await create_tour(session_factory, name="The City Wanderer", start_location=LOS_ANGELES)

    near = await client.get("/api/v1/tours/tours-within/200/center/51.0447,-114.0719/unit/km")
    far = await client.get("/api/v1/tours/tours-within/100/center/51.0447,-114.0719/unit/km")

    assert [doc["name"] for doc in near.json()["data"]["docs"]] == ["The Forest Hiker"]
    assert far.json()["results"] == 0


@pytest.mark.asyncio
async def test_distances_nearest_first(client: AsyncClient, session_factory, test_tour):
    await create_tour(session_factory, name="The City Wanderer", start_location=LOS_ANGELES)

    km = await client.get("/api/v1/tours/distances/34.0,-118.0/unit/km")
    mi = await client.get("/api/v1/tours/distances/34.0,-118.0/unit/mi")

    km_data = km.json()["data"]["data"]
    mi_data = mi.json()["data"]["data"]
    assert [row["name"] for row in km_data] == ["The City Wanderer", "The Forest Hiker"]
    assert km_data[1]["distance"] > km_data[0]["distance"]
    assert mi_data[1]["distance"] == pytest.approx(km_data[1]["distance"] * 0.621371, rel=1e-3)


@pytest.mark.asyncio
async def test_geo_query_validation(client: AsyncClient):
    bad_unit = await client.get("/api/v1/tours/distances/34.0,-118.0/unit/yards")
    bad_latlng = await client.get("/api/v1/tours/distances/34.0/unit/km")
    bad_distance = await client.get("/api/v1/tours/tours-within/0/center/34.0,-118.0/unit/mi")

    assert bad_unit.status_code == 400
    assert bad_latlng.status_code == 400
    assert bad_latlng.json()["message"] == "Please provide latitude and longitude in the format lat,lng."
    assert bad_distance.status_code == 400


@pytest.mark.asyncio
async def test_upload_tour_images(client: AsyncClient, admin_headers, test_tour, public_dir):
    files = [
        ("image_cover", ("cover.jpg", jpeg_bytes(), "image/jpeg")),
        ("images", ("one.jpg", jpeg_bytes(), "image/jpeg")),
        ("images", ("two.jpg", jpeg_bytes(color=(200, 10, 10)), "image/jpeg")),
    ]

    response = await client.patch(f"/api/v1/tours/{test_tour.id}/images", files=files, headers=admin_headers)

    assert response.status_code == 200
    doc = response.json()["data"]["doc"]
    assert doc["image_cover"].startswith(f"tour-{test_tour.id}-")
    assert len(doc["images"]) == 2

    cover = public_dir / "img" / "tours" / doc["image_cover"]
    with Image.open(cover) as img:
        assert img.size == (2000, 1333)
        assert img.format == "JPEG"


@pytest.mark.asyncio
async def test_upload_rejects_non_images(client: AsyncClient, admin_headers, test_tour, public_dir):
    files = [("image_cover", ("notes.txt", b"hello", "text/plain"))]

    response = await client.patch(f"/api/v1/tours/{test_tour.id}/images", files=files, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Not an image! Please upload only images."


@pytest.mark.asyncio
async def test_upload_rejects_too_many_images(client: AsyncClient, admin_headers, test_tour, public_dir):
    files = [("images", (f"{i}.jpg", jpeg_bytes(), "image/jpeg")) for i in range(4)]

    response = await client.patch(f"/api/v1/tours/{test_tour.id}/images", files=files, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Too many images. Upload at most 3."


@pytest.mark.asyncio
async def test_update_rejects_null_for_required_fields(client: AsyncClient, admin_headers, test_tour):
    response = await client.patch(
        f"/api/v1/tours/{test_tour.id}",
        json={"name": None, "price": None},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid input data. name, price cannot be null"


@pytest.mark.asyncio
async def test_update_clears_optional_fields(client: AsyncClient, admin_headers, session_factory):
    tour = await create_tour(session_factory, price_discount=50)

    response = await client.patch(
        f"/api/v1/tours/{tour.id}",
        json={"price_discount": None, "description": None},
        headers=admin_headers,
    )

    assert response.status_code == 200
    doc = response.json()["data"]["doc"]
    assert doc["price_discount"] is None
    assert doc["description"] is None
    assert doc["name"] == "The Forest Hiker"


@pytest.mark.asyncio
async def test_list_tours_without_trailing_slash(client: AsyncClient, test_tour):
    response = await client.get("/api/v1/tours", follow_redirects=False)

    assert response.status_code == 200
    assert response.json()["results"] == 1
