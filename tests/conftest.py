"""Pytest configuration and fixtures."""

import os

# Settings are read at import time
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from slotbook.api.deps import get_dispatcher
from slotbook.core.security import create_access_token
from slotbook.db.base import Base
from slotbook.db.session import get_db
from slotbook.main import app
from slotbook.schemas.actor import Actor, ActorRole
from slotbook.schemas.appointment import AppointmentDetails
from slotbook.services.notifications import NotificationDispatcher, NotificationSender

import slotbook.models  # noqa: F401


# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

RESOURCE_ID = "room-101"


def at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    """Fixed UTC instant on 2030-01-``day`` for readable windows."""
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


def make_details(title: str = "Planning session", **kwargs) -> AppointmentDetails:
    return AppointmentDetails(title=title, **kwargs)


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher_mock() -> MagicMock:
    """Dispatcher double that records dispatch calls."""
    dispatcher = MagicMock(spec=NotificationDispatcher)
    dispatcher.dispatch.return_value = True
    return dispatcher


@pytest.fixture
def dispatcher(session_factory) -> NotificationDispatcher:
    """Real dispatcher without a worker; tests deliver with ``drain()``."""
    return NotificationDispatcher(NotificationSender(session_factory), maxsize=100)


@pytest.fixture
def user_actor() -> Actor:
    return Actor(actor_id="user-1", role=ActorRole.USER)


@pytest.fixture
def other_actor() -> Actor:
    return Actor(actor_id="user-2", role=ActorRole.USER)


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(actor_id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
async def client(
    async_session: AsyncSession,
    dispatcher: NotificationDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Create HTTP test client with overridden dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


def create_test_token(actor: Actor) -> str:
    """Create a test JWT token for an actor."""
    return create_access_token(subject=actor.actor_id, role=actor.role.value)


@pytest.fixture
def auth_headers(user_actor: Actor) -> dict[str, str]:
    """Authorization headers for a regular user."""
    return {"Authorization": f"Bearer {create_test_token(user_actor)}"}


@pytest.fixture
def other_auth_headers(other_actor: Actor) -> dict[str, str]:
    """Authorization headers for a second regular user."""
    return {"Authorization": f"Bearer {create_test_token(other_actor)}"}


@pytest.fixture
def admin_auth_headers(admin_actor: Actor) -> dict[str, str]:
    """Authorization headers for an admin."""
    return {"Authorization": f"Bearer {create_test_token(admin_actor)}"}
