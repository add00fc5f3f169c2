"""
Product Inventory API — Test Configuration (conftest.py)
===========================================================

What:  Shared pytest fixtures for the test suite.
How:   MongoDB is replaced by mongomock-motor, an in-memory store with the
       Motor API, so no server is needed. The HTTP client talks to the ASGI
       app directly through httpx's ASGITransport.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── test_settings: Settings pointed at a throwaway database
    ├── fake_client_factory: Records every client the manager builds
    ├── make_client_factory: FakeClientFactory class (failing pings)
    ├── app_factory: build_test_app, for custom connection managers
    ├── mongo_db: Empty in-memory database
    ├── seeded_db: mongo_db with a fixed product catalogue
    └── test_client: HTTPX AsyncClient bound to an app using seeded_db
"""

import os
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

# Set before any inventory_api import reads the environment
os.environ["MONGODB_URI"] = "mongodb://localhost:27017/inventory_test"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

from inventory_api.config import Settings  # noqa: E402
from inventory_api.database import ConnectionManager, get_database  # noqa: E402


SAMPLE_PRODUCTS = [
    {"name": "ABC Widget", "price": 9.99, "category": "tools", "stock": 5},
    {"name": "Gadget", "price": 5.0, "category": "tools", "stock": 0},
    {"name": "Sprocket", "price": 10.0, "category": "parts", "stock": 20},
    {"name": "Gizmo", "price": 12.5, "category": "gadgets", "stock": 2},
    {"name": "abc mini", "price": 7.5, "category": "tools", "stock": 1,
     "description": "Pocket-sized"},
    {"name": "Bolt", "price": 10.0, "category": "parts", "stock": 100},
]


class FakeMotorClient:
    """
    Stands in for AsyncIOMotorClient in connection manager tests.

    `admin.command` answers the bootstrap ping; `get_default_database`
    returns a mock database whose `command` answers health pings.
    """

    def __init__(self, uri: str, **options: Any):
        self.uri = uri
        self.options = options
        self.closed = False
        self.nodes = frozenset({("localhost", 27017)})
        self.admin = MagicMock()
        self.admin.command = AsyncMock(return_value={"ok": 1.0})
        self.database = MagicMock(name="database")
        self.database.command = AsyncMock(return_value={"ok": 1.0})

    def get_default_database(self, default=None):
        self.database.name = default
        return self.database

    def close(self) -> None:
        self.closed = True


class FakeClientFactory:
    """Callable client factory that keeps every client it created."""

    def __init__(self, ping_side_effect=None):
        self.clients: List[FakeMotorClient] = []
        self.ping_side_effect = ping_side_effect

    def __call__(self, uri: str, **options: Any) -> FakeMotorClient:
        client = FakeMotorClient(uri, **options)
        if self.ping_side_effect is not None:
            client.admin.command = AsyncMock(side_effect=self.ping_side_effect)
        self.clients.append(client)
        return client


@pytest.fixture
def test_settings():
    return Settings(
        mongodb_uri="mongodb://localhost:27017/inventory_test",
        environment="test",
        log_level="WARNING",
    )


@pytest.fixture
def fake_client_factory():
    return FakeClientFactory()


@pytest.fixture
def make_client_factory():
    """The factory class itself, for tests that need a failing ping."""
    return FakeClientFactory


@pytest.fixture
def mongo_db():
    """A fresh in-memory database per test."""
    return AsyncMongoMockClient()["inventory_test"]


@pytest_asyncio.fixture
async def seeded_db(mongo_db):
    """mongo_db with SAMPLE_PRODUCTS inserted (copies, so tests can't mutate them)."""
    await mongo_db["products"].insert_many([dict(p) for p in SAMPLE_PRODUCTS])
    return mongo_db


def build_test_app(settings: Settings, connections: ConnectionManager, database=None):
    from inventory_api.main import create_app

    app = create_app(config=settings, connections=connections)
    if database is not None:
        app.dependency_overrides[get_database] = lambda: database
    return app


@pytest.fixture
def app_factory():
    """build_test_app, for tests that wire their own connection manager."""
    return build_test_app


@pytest_asyncio.fixture
async def test_client(test_settings, fake_client_factory, seeded_db):
    """
    HTTPX AsyncClient for endpoint tests.

    raise_app_exceptions=False lets the catch-all 500 handler's response
    reach the test instead of re-raising into it.
    """
    connections = ConnectionManager(test_settings, client_factory=fake_client_factory)
    app = build_test_app(test_settings, connections, database=seeded_db)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
