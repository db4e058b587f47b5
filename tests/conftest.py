import os
import sys
from contextlib import asynccontextmanager
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Add the app directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app import models  # noqa: F401,E402
from app.core.celery import celery_app  # noqa: E402
from app.core.config import SchedulingConfig, settings  # noqa: E402
from app.core.database import Base, get_db, get_session_factory  # noqa: E402
from app.core.redis import redis_client  # noqa: E402
from app.main import app  # noqa: E402
from app.models.service import Service  # noqa: E402
from app.services.notification_tasks import execute_notification  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite per test so separate sessions really contend."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        connect_args={"timeout": 15},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def override_dependencies(session_factory):
    """Point request sessions and post-commit work at the test database."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def booking_lock():
    """Stand in for Redis: every booking acquires its date lock."""

    @asynccontextmanager
    async def _always_acquired(booking_date, timeout=30, blocking_timeout=5.0):
        yield True

    with patch.object(redis_client, "booking_lock", _always_acquired):
        yield


@pytest.fixture(autouse=True)
def celery_send():
    """Capture jobs handed to the worker instead of talking to a broker."""
    with patch.object(execute_notification, "apply_async") as apply_async, patch.object(
        celery_app.control, "revoke"
    ):
        apply_async.return_value = MagicMock(id="task-id")
        yield apply_async


@pytest.fixture
def config():
    return SchedulingConfig()


@pytest.fixture
async def braids_service(db) -> Service:
    service = Service(
        name="Knotless Braids",
        price=Decimal("180.00"),
        duration="3 Hours",
        description="Medium knotless braids",
    )
    db.add(service)
    await db.commit()
    await db.refresh(service)
    return service


@pytest.fixture
async def trim_service(db) -> Service:
    service = Service(
        name="Trim",
        price=Decimal("25.00"),
        duration="30 min",
        description="",
    )
    db.add(service)
    await db.commit()
    await db.refresh(service)
    return service


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {settings.ADMIN_API_TOKEN}"}
