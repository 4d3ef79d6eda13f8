"""
Tests for the server-rendered pages.
"""

import pytest
from httpx import AsyncClient

from tourbook.models.booking import Booking

from conftest import PASSWORD, create_tour


@pytest.mark.asyncio
async def test_overview_lists_tours(client: AsyncClient, test_tour):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "The Forest Hiker" in response.text
    assert 'href="/tour/the-forest-hiker"' in response.text
    assert "Log in" in response.text


@pytest.mark.asyncio
async def test_tour_page(client: AsyncClient, test_tour):
    response = await client.get("/tour/the-forest-hiker")

    assert response.status_code == 200
    assert "The Forest Hiker tour" in response.text
    assert "Log in to book tour" in response.text


@pytest.mark.asyncio
async def test_tour_page_for_logged_in_user(client: AsyncClient, test_user, test_tour):
    await client.post("/api/v1/users/login", json={"email": "test@example.com", "password": PASSWORD})

    response = await client.get("/tour/the-forest-hiker")

    assert 'id="book-tour"' in response.text
    assert "Test" in response.text


@pytest.mark.asyncio
async def test_unknown_tour_page_is_html_404(client: AsyncClient):
    response = await client.get("/tour/no-such-tour")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")
    assert "There is no tour with that name." in response.text


@pytest.mark.asyncio
async def test_secret_tour_page_hidden(client: AsyncClient, session_factory):
    await create_tour(session_factory, name="The Hidden Valley", secret_tour=True)

    response = await client.get("/tour/the-hidden-valley")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_login_page(client: AsyncClient):
    response = await client.get("/login")

    assert response.status_code == 200
    assert "Log into your account" in response.text


@pytest.mark.asyncio
async def test_account_page_requires_login(client: AsyncClient):
    client.cookies.clear()

    response = await client.get("/me")

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("text/html")


@pytest.mark.asyncio
async def test_invalid_cookie_treated_as_anonymous(client: AsyncClient, test_tour):
    response = await client.get("/", headers={"Cookie": "jwt=not-a-token"})

    assert response.status_code == 200
    assert "Log in" in response.text


@pytest.mark.asyncio
async def test_account_page(client: AsyncClient, auth_headers):
    response = await client.get("/me", headers=auth_headers)

    assert response.status_code == 200
    assert 'value="Test User"' in response.text


@pytest.mark.asyncio
async def test_my_tours_shows_booked_tours_and_alert(client: AsyncClient, session_factory, auth_headers, test_user, test_tour):
    await create_tour(session_factory, name="The Unbooked Wanderer")
    async with session_factory() as session:
        session.add(Booking(tour_id=test_tour.id, user_id=test_user.id, price=397))
        await session.commit()

    response = await client.get("/my-tours?alert=booking", headers=auth_headers)

    assert response.status_code == 200
    assert "The Forest Hiker" in response.text
    assert "The Unbooked Wanderer" not in response.text
    assert "Your booking was successful!" in response.text


@pytest.mark.asyncio
async def test_submit_user_data(client: AsyncClient, auth_headers):
    response = await client.post(
        "/submit-user-data",
        data={"name": "Form Renamed", "email": "form@example.com"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert 'value="Form Renamed"' in response.text

    me = await client.get("/api/v1/users/me", headers=auth_headers)
    assert me.json()["data"]["doc"]["email"] == "form@example.com"
