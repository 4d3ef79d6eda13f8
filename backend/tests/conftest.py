"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own database (a temporary SQLite file unless
TEST_DATABASE_URL points elsewhere): tables are created before and dropped
after the test. Redis is disabled and email goes to the console backend.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("EMAIL_BACKEND", "console")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_123")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tourbook.core.config import Settings, get_settings
from tourbook.core.security import create_access_token, hash_password
from tourbook.db.base import Base
from tourbook.db.session import build_engine, build_sessionmaker
from tourbook.main import app
from tourbook.models.user import User
from tourbook.models.tour import Tour
from tourbook.repositories.tours import TourRepository

PASSWORD = "testpassword123"


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables, yield engine, then drop tables for isolation."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = build_engine(Settings(DATABASE_URL=url))

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_sessionmaker(engine)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, with request sessions bound to the test database."""
    app.state.sessionmaker = session_factory

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def public_dir(tmp_path, monkeypatch):
    """Send image uploads to a temporary directory."""
    directory = tmp_path / "public"
    monkeypatch.setattr(get_settings(), "PUBLIC_DIR", directory)
    return directory


# -- data helpers ---------------------------------------------------------

async def create_user(
    session_factory,
    name: str,
    email: str,
    role: str = "user",
    password: str = PASSWORD,
    **extra,
) -> User:
    async with session_factory() as session:
        user = User(name=name, email=email, role=role, password=hash_password(password), **extra)
        session.add(user)
        await session.commit()
        return user


def tour_payload(**overrides) -> dict:
    payload = {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "description": "Lorem ipsum dolor sit amet.",
        "image_cover": "tour-1-cover.jpg",
        "images": ["tour-1-1.jpg"],
        "start_dates": ["2027-04-25T09:00:00", "2027-07-20T09:00:00"],
        "start_location": {
            "type": "Point",
            "coordinates": [-116.214531, 51.417611],
            "description": "Banff, CAN",
        },
        "locations": [],
    }
    payload.update(overrides)
    return payload


async def create_tour(session_factory, **overrides) -> Tour:
    """Create a tour through the repository so derived fields are set."""
    async with session_factory() as session:
        tour = await TourRepository(session).create(tour_payload(**overrides))
        await session.commit()
        return tour


def auth_headers_for(user: User, issued_at: Optional[datetime] = None) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, issued_at=issued_at)}"}


def hours_ago(hours: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)


# -- fixtures ---------------------------------------------------------------

@pytest_asyncio.fixture
async def test_user(session_factory) -> User:
    """A standard user."""
    return await create_user(session_factory, "Test User", "test@example.com")


@pytest_asyncio.fixture
async def admin_user(session_factory) -> User:
    return await create_user(session_factory, "Admin User", "admin@example.com", role="admin")


@pytest_asyncio.fixture
async def lead_guide(session_factory) -> User:
    return await create_user(session_factory, "Lead Guide", "lead@example.com", role="lead-guide")


@pytest_asyncio.fixture
async def guide(session_factory) -> User:
    return await create_user(session_factory, "Tour Guide", "guide@example.com", role="guide")


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token for the standard user."""
    return auth_headers_for(test_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers_for(admin_user)


@pytest_asyncio.fixture
async def test_tour(session_factory) -> Tour:
    return await create_tour(session_factory)
