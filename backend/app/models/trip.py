"""Trip models - the draft request and its generated day/activity records."""

import datetime as dt
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from backend.app.models.common import (
    ActivitySlot,
    BudgetType,
    CompanionType,
    IconicPreference,
    PaceType,
    StayArea,
    TransportMode,
    TripStatus,
)


class DayWeather(BaseModel):
    """Forecast attached to a generated day."""

    condition: str
    condition_text: str
    temperature_max: float
    temperature_min: float
    precipitation_chance: int = Field(..., ge=0, le=100)
    wind_speed: float = 0.0


class TripActivity(BaseModel):
    """Single activity within a day."""

    id: UUID = Field(default_factory=uuid4)
    slot: ActivitySlot = ActivitySlot.morning
    name: str
    description: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    duration_minutes: int | None = None
    start_time: str | None = Field(None, description="HH:MM local time")
    end_time: str | None = Field(None, description="HH:MM local time")
    cost: str | None = None
    tips: str | None = None
    is_completed: bool = False


class TripDay(BaseModel):
    """One generated day of an itinerary."""

    id: UUID = Field(default_factory=uuid4)
    day_number: int = Field(..., ge=1)
    date: dt.date | None = None
    title: str | None = None
    summary: str | None = None
    activities: list[TripActivity] = Field(default_factory=list)
    weather: DayWeather | None = None


class TripRecord(BaseModel):
    """Persisted trip request plus any generated days."""

    id: UUID
    user_id: UUID
    destination_cities: list[str] = Field(..., min_length=1)
    duration_nights: int = Field(..., ge=0)
    start_date: date | None = None
    arrival_time: str | None = None
    departure_time: str | None = None
    companion: CompanionType = CompanionType.solo
    arrival_point: str | None = None
    stay_area: StayArea = StayArea.center
    transport_mode: TransportMode = TransportMode.mixed
    iconic_preference: IconicPreference = IconicPreference.optional
    budget: BudgetType = BudgetType.moderate
    pace: PaceType = PaceType.moderate
    must_visit_places: list[str] = Field(default_factory=list)
    title: str | None = None
    status: TripStatus = TripStatus.draft
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    days: list[TripDay] = Field(default_factory=list)

    @property
    def day_count(self) -> int:
        """Number of calendar days covered (nights + 1)."""
        return self.duration_nights + 1
