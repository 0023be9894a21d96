# tests/conftest.py

"""
Pytest configuration and shared fixtures.

Every test that touches the database gets a fresh in-memory Mongo
(mongomock-motor) with Beanie initialized on it.
"""

import os

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("DATABASE_NAME", "vyapaal_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.core.database import init_db
from app.core.security import create_access_token, get_password_hash
from app.models.business import Business
from app.models.user import User
from app.services import membership
from main import app as fastapi_app

PASSWORD = "secret123"
HASHED_PASSWORD = get_password_hash(PASSWORD)


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    await init_db(client)
    yield client


@pytest.fixture
def make_user(db):
    async def _make_user(email: str, name: str = "Test User") -> User:
        user = User(email=email, name=name, hashed_password=HASHED_PASSWORD)
        await user.insert()
        return user

    return _make_user


@pytest.fixture
async def owner(make_user):
    return await make_user("a@x.com", "Owner A")


@pytest.fixture
async def staff_user(make_user):
    return await make_user("b@x.com", "Staff B")


@pytest.fixture
async def outsider(make_user):
    return await make_user("c@x.com", "Outsider C")


@pytest.fixture
async def acme(owner):
    """Business "Acme" owned by `owner`, with code ACME12."""
    return await membership.create_business(owner, "Acme", "ACME12")


@pytest.fixture
async def acme_with_manager(acme, staff_user):
    """Acme after `staff_user` joined with the Manager role code."""
    manager = acme.find_role("role_manager")
    await membership.join_business(staff_user, manager.role_code, phone="9999999999")
    return await Business.get(acme.id)


@pytest.fixture
def reload_user():
    async def _reload(user: User) -> User:
        return await User.find_one(User.user_id == user.user_id)

    return _reload


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token(data={"sub": str(user.user_id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def client(db):
    """HTTP client bound to the app; the lifespan is skipped, `db` already initialized Beanie."""
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as test_client:
        yield test_client
