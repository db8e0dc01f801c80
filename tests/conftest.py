"""
Shared test fixtures.

Engine tests run on a ``ManualTimerFacility`` so phase timers fire only
when a test advances the virtual clock -- nothing sleeps.  The vehicle
status gateway is an ``AsyncMock``; repository tests use in-memory SQLite
(see ``tests/sqlite_models.py``).
"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from rentquad.domain.engine import RentalEngine
from rentquad.domain.entities import ActiveVehicle
from rentquad.infrastructure.gateway import StatusPublisher
from rentquad.infrastructure.timers import ManualTimerFacility
from tests.fakes import FakeLock
from tests.sqlite_models import TestBase, TestSessionFactory, test_engine


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _clear_fake_locks():
    FakeLock.held.clear()
    yield
    FakeLock.held.clear()


@pytest.fixture
def timers() -> ManualTimerFacility:
    return ManualTimerFacility()


@pytest.fixture
def gateway() -> AsyncMock:
    gw = AsyncMock()
    gw.set_status = AsyncMock(return_value=None)
    return gw


@pytest.fixture
def publisher(gateway) -> StatusPublisher:
    return StatusPublisher(gateway)


@pytest.fixture
def engine(timers, publisher) -> RentalEngine:
    rental = RentalEngine(timers, publisher)
    yield rental
    rental.close()


@pytest.fixture
def car_a() -> ActiveVehicle:
    return ActiveVehicle(id="v1", title="Car A")


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(TestBase.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(TestBase.metadata.drop_all)
