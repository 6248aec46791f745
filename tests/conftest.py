"""
Pytest fixtures for storefront tests.

Provides a throwaway sqlite database per test, factories for principals,
products and orders, and an HTTP client with Redis and image storage doubles.
"""
import os

# Must be set before storefront.core.config is imported
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from decimal import Decimal
import itertools

import httpx
import pytest

from storefront.core import security
from storefront.core.redis import get_redis
from storefront.db import database, models
from storefront.main import app
from storefront.utils.image_utils import StoredImage, get_image_storage


class FakeRedis:
    """In-memory stand-in for the two commands the login throttle uses."""

    def __init__(self):
        self.counters = {}
        self.ttls = {}

    async def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True


class FakeImageStorage:
    def __init__(self):
        self.stored = []
        self.deleted = []
        self._ids = itertools.count(1)

    def store(self, data: bytes) -> StoredImage:
        n = next(self._ids)
        self.stored.append(data)
        return StoredImage(url=f"https://img.test/{n}.jpg", public_id=f"products/{n}")

    def delete(self, public_id: str) -> None:
        self.deleted.append(public_id)


@pytest.fixture
async def engine(tmp_path):
    engine = database.build_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    await database.create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return database.build_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def image_storage():
    return FakeImageStorage()


@pytest.fixture
async def client(session_factory, fake_redis, image_storage):
    app.state.sessionmaker = session_factory
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_image_storage] = lambda: image_storage
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_buyer(session_factory):
    counter = itertools.count(1)

    async def _make(name="Buyer", email=None, password="secret123"):
        async with session_factory() as session:
            buyer = models.Buyer(
                name=name,
                email=email or f"buyer{next(counter)}@example.com",
                hashed_password=security.hash_password(password),
            )
            session.add(buyer)
            await session.commit()
            return buyer
    return _make


@pytest.fixture
def make_staff(session_factory):
    counter = itertools.count(1)

    async def _make(role=models.StaffRole.employee, name=None, email=None, password="secret123"):
        async with session_factory() as session:
            staff = models.Staff(
                name=name or f"{role.value} member",
                email=email or f"{role.value}{next(counter)}@example.com",
                hashed_password=security.hash_password(password),
                role=role,
            )
            session.add(staff)
            await session.commit()
            return staff
    return _make


@pytest.fixture
def make_product(session_factory):
    async def _make(name="Pizza", price="10.00", available=True, created_by=None):
        async with session_factory() as session:
            product = models.Product(
                name=name,
                price=Decimal(price),
                available=available,
                created_by=created_by,
            )
            session.add(product)
            await session.commit()
            return product
    return _make


@pytest.fixture
def make_order(session_factory):
    async def _make(buyer_id, status=models.OrderStatus.new, total="0.00", address="1 Main St"):
        async with session_factory() as session:
            order = models.Order(
                buyer_id=buyer_id,
                status=status,
                total=Decimal(total),
                delivery_address=address,
            )
            session.add(order)
            await session.commit()
            return order
    return _make


@pytest.fixture
def auth_header():
    def _header(principal) -> dict:
        return {"Authorization": f"Bearer {security.create_access_token(principal)}"}
    return _header
