"""Shared fixtures for the ride-service test suite."""

from __future__ import annotations

import os

# main.py builds its engine at import time; keep it off the local disk.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ride_service.clock import FixedClock
from ride_service.entities import RideProjection
from ride_service.schema import create_schema
from ride_service.weather import Weather

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeWeatherService:
    """Returns ``result`` or raises ``error``; records every call."""

    def __init__(self, result: Weather | None = None, error: BaseException | None = None):
        self.result = result
        self.error = error
        self.calls: list[tuple] = []

    async def get_historical_weather(self, latitude, longitude, ride_date, hour):
        self.calls.append((latitude, longitude, ride_date, hour))
        if self.error is not None:
            raise self.error
        return self.result


class FakeRedis:
    def __init__(self):
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def weather() -> FakeWeatherService:
    return FakeWeatherService()


@pytest.fixture
def redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def sunny() -> Weather:
    return Weather(
        temperature=Decimal("68.5"),
        conditions="Sunny",
        wind_speed=Decimal("8.0"),
        wind_direction="NW",
        humidity=Decimal("45"),
        pressure=Decimal("1013.2"),
        captured_at=NOW,
    )


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await create_schema(engine)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as s:
        yield s
    await engine.dispose()


@pytest.fixture
def make_projection():
    def _make(**kw) -> RideProjection:
        defaults = dict(
            ride_id=uuid4(),
            user_id="user-1",
            date=TODAY - timedelta(days=10),
            hour=14,
            distance=Decimal("10.00"),
            distance_unit="miles",
            ride_name="Original Ride",
            start_location="Home",
            end_location="Office",
            notes="Original notes",
            created_timestamp=NOW - timedelta(days=10),
        )
        defaults.update(kw)
        return RideProjection(**defaults)

    return _make
