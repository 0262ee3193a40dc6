"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Generator
from dataclasses import dataclass
from datetime import date, time
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.catalog import Service, ServiceVariant
from app.models.roster import BusinessDay, Worker as WorkerRow
from app.scheduling.availability import AvailabilityResolver
from app.scheduling.types import (
    BusinessHours,
    DayHours,
    FollowUp,
    ServiceSelection,
    Worker,
)

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

UTC = ZoneInfo("UTC")
SITE_ID = "site-1"

# A Monday far enough ahead that "not in the past" filtering never applies
MONDAY = date(2030, 6, 3)


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
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture(scope="function")
def client() -> Generator[TestClient, None, None]:
    """FastAPI test client for endpoints that do not touch the database."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
async def api_client(async_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client sharing the test database session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client

    app.dependency_overrides.clear()


# ============================================================================
# Engine fixtures (no database)
# ============================================================================


@pytest.fixture
def monday() -> date:
    return MONDAY


@pytest.fixture
def business_hours() -> BusinessHours:
    """Open every day 09:00-18:00."""
    return BusinessHours(days={day: DayHours(open=9 * 60, close=18 * 60) for day in range(7)})


@pytest.fixture
def haircut() -> ServiceSelection:
    """Haircut, 30 minutes, with a 45 minute Color follow-up after a 10 minute wait."""
    return ServiceSelection(
        service_id="haircut",
        service_name="Haircut",
        variant_id="haircut-standard",
        duration_minutes=30,
        follow_up=FollowUp(name="Color", wait_minutes=10, duration_minutes=45),
    )


@pytest.fixture
def maya() -> Worker:
    return Worker(id="maya", name="Maya", capabilities=frozenset({"haircut"}))


@pytest.fixture
def make_resolver(business_hours: BusinessHours):
    """Build an AvailabilityResolver for a roster."""

    def _make(workers: list[Worker], hours: BusinessHours | None = None) -> AvailabilityResolver:
        return AvailabilityResolver(hours or business_hours, workers, UTC)

    return _make


# ============================================================================
# Database fixtures
# ============================================================================


@dataclass
class SeededSite:
    """Ids of the catalog and roster created by ``seeded_site``."""

    site_id: str
    haircut_id: str
    haircut_variant_id: str
    shave_id: str
    shave_variant_id: str
    maya_id: str
    alex_id: str


@pytest.fixture
async def seeded_site(async_session: AsyncSession) -> SeededSite:
    """A site open 09:00-18:00 daily with two workers and two services."""
    haircut = Service(site_id=SITE_ID, name="Haircut", category="Hair")
    shave = Service(site_id=SITE_ID, name="Shave", category="Barber")
    async_session.add_all([haircut, shave])
    await async_session.flush()

    haircut_variant = ServiceVariant(
        service_id=haircut.id,
        name="Standard",
        duration_minutes=30,
        follow_up_name="Color",
        follow_up_wait_minutes=10,
        follow_up_duration_minutes=45,
    )
    shave_variant = ServiceVariant(
        service_id=shave.id,
        name="Classic",
        duration_minutes=20,
    )
    maya = WorkerRow(
        site_id=SITE_ID,
        name="Maya",
        capabilities=[haircut.id],
        weekly_availability={},
        display_order=0,
    )
    alex = WorkerRow(
        site_id=SITE_ID,
        name="Alex",
        capabilities=[haircut.id, shave.id],
        weekly_availability={},
        display_order=1,
    )
    async_session.add_all([haircut_variant, shave_variant, maya, alex])
    for day in range(7):
        async_session.add(
            BusinessDay(
                site_id=SITE_ID,
                day_of_week=day,
                enabled=True,
                open_time=time(9, 0),
                close_time=time(18, 0),
                breaks=[],
            )
        )
    await async_session.commit()

    return SeededSite(
        site_id=SITE_ID,
        haircut_id=haircut.id,
        haircut_variant_id=haircut_variant.id,
        shave_id=shave.id,
        shave_variant_id=shave_variant.id,
        maya_id=maya.id,
        alex_id=alex.id,
    )
