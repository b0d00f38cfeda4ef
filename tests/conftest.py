"""Shared pytest fixtures for all test suites."""

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import date, timedelta
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.app.config import Settings
from backend.app.db.engine import create_session_factory
from backend.app.db.inmemory import InMemoryCreditLedger, InMemoryTripStore
from backend.app.db.models import Base
from backend.app.models.common import ActivitySlot
from backend.app.models.tool_results import DailyForecast, LiveEvent
from backend.app.models.trip import TripActivity, TripDay, TripRecord

ACCOUNT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")


class FakeContentFetchers:
    """Scriptable ContentFetchers.

    Each source returns its configured value, or raises it when it is an
    exception. Calls are recorded for assertions.
    """

    def __init__(
        self,
        *,
        forecast: list[DailyForecast] | Exception | None = None,
        events: list[LiveEvent] | Exception | None = None,
        days: list[TripDay] | Exception | None = None,
    ) -> None:
        self.forecast = forecast if forecast is not None else []
        self.events = events if events is not None else []
        self.days = days if days is not None else []
        self.weather_calls: list[tuple[str, date, int]] = []
        self.event_calls: list[tuple[list[str], date | None, int]] = []
        self.synthesis_calls: list[dict[str, Any]] = []

    async def weather(self, city: str, start_date: date, day_count: int) -> list[DailyForecast]:
        self.weather_calls.append((city, start_date, day_count))
        if isinstance(self.forecast, Exception):
            raise self.forecast
        return self.forecast

    async def search_events(
        self, cities: list[str], start_date: date | None, night_count: int
    ) -> list[LiveEvent]:
        self.event_calls.append((cities, start_date, night_count))
        if isinstance(self.events, Exception):
            raise self.events
        return self.events

    async def synthesize_itinerary(
        self,
        trip: TripRecord,
        events: list[LiveEvent],
        forecast: list[DailyForecast],
    ) -> list[TripDay]:
        self.synthesis_calls.append({"trip": trip, "events": events, "forecast": forecast})
        if isinstance(self.days, Exception):
            raise self.days
        return self.days


def make_days(count: int, start: date | None = date(2030, 5, 1)) -> list[TripDay]:
    """Days with two activities each."""
    return [
        TripDay(
            day_number=i + 1,
            date=start + timedelta(days=i) if start else None,
            title=f"Day {i + 1}",
            activities=[
                TripActivity(slot=ActivitySlot.morning, name=f"Museum {i + 1}"),
                TripActivity(slot=ActivitySlot.evening, name=f"Dinner {i + 1}"),
            ],
        )
        for i in range(count)
    ]


def make_event(event_id: str, local_date: str = "2030-05-02") -> LiveEvent:
    return LiveEvent(
        id=event_id,
        name=f"Concert {event_id}",
        local_date=local_date,
        local_time="20:00:00",
        venue_name="Accor Arena",
        venue_city="Paris",
        category="Music",
    )


def make_forecast(start: date, count: int) -> list[DailyForecast]:
    return [
        DailyForecast(
            date=start + timedelta(days=i),
            condition_code="partly_cloudy",
            condition_text="Partly cloudy",
            temperature_max=21.0,
            temperature_min=12.0,
            precipitation_chance=10,
        )
        for i in range(count)
    ]


@pytest.fixture
def settings() -> Settings:
    """Settings with no external services and no reveal delay."""
    return Settings(
        database_url=None,
        openai_api_key="",
        ticketmaster_api_key="",
        day_reveal_delay_ms=0,
        soft_fetch_timeout_seconds=1.0,
    )


@pytest.fixture
def account_id() -> uuid.UUID:
    return ACCOUNT_ID


@pytest.fixture
def fake_fetchers() -> type[FakeContentFetchers]:
    """The FakeContentFetchers class, for building scripted fetchers."""
    return FakeContentFetchers


@pytest.fixture
def days_factory() -> Callable[..., list[TripDay]]:
    return make_days


@pytest.fixture
def event_factory() -> Callable[..., LiveEvent]:
    return make_event


@pytest.fixture
def forecast_factory() -> Callable[..., list[DailyForecast]]:
    return make_forecast


@pytest.fixture
def trip_store() -> InMemoryTripStore:
    return InMemoryTripStore()


@pytest.fixture
def ledger() -> InMemoryCreditLedger:
    return InMemoryCreditLedger()


@pytest.fixture
def trip_factory() -> Callable[..., TripRecord]:
    """Build a draft Paris trip; keyword arguments override fields."""

    def _make(**overrides: Any) -> TripRecord:
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "user_id": ACCOUNT_ID,
            "destination_cities": ["Paris"],
            "duration_nights": 2,
            "start_date": date(2030, 5, 1),
            "title": "Paris weekend",
        }
        fields.update(overrides)
        return TripRecord(**fields)

    return _make


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the schema created.

    StaticPool keeps the single connection (and the tables) alive across
    sessions.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(sqlite_engine)
