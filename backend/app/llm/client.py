"""LLM client for itinerary synthesis with OpenAI integration.

Security: Reads API key from settings (environment) only, never hardcoded.
Provides a deterministic stub when no key is present for local runs and tests.
"""

import logging
from datetime import date, timedelta
from typing import Protocol

from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from backend.app.config import Settings, get_settings
from backend.app.models.common import ActivitySlot
from backend.app.models.tool_results import DailyForecast, LiveEvent
from backend.app.models.trip import DayWeather, TripActivity, TripDay, TripRecord

logger = logging.getLogger(__name__)


class ItineraryParseError(ValueError):
    """Model answer did not contain a usable itinerary."""


class ItinerarySynthesizer(Protocol):
    """Protocol for itinerary synthesis implementations."""

    async def synthesize_itinerary(
        self,
        *,
        trip: TripRecord,
        events: list[LiveEvent],
        forecast: list[DailyForecast],
    ) -> list[TripDay]:
        """Plan the trip day by day.

        Args:
            trip: Trip request with preferences
            events: Live events the traveler confirmed
            forecast: Daily forecast for the trip dates (may be empty)

        Returns:
            Days ordered by day number, with activities

        Raises:
            ItineraryParseError: If the answer cannot be turned into days
        """
        ...


# Response shapes expected from the model (camelCase keys)
class _ActivityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slot: str = "morning"
    name: str
    description: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    duration: int | None = None
    start_time: str | None = Field(None, alias="startTime")
    end_time: str | None = Field(None, alias="endTime")
    cost: str | None = None
    tips: str | None = None


class _DayResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day_number: int = Field(..., alias="dayNumber", ge=1)
    title: str
    summary: str | None = None
    activities: list[_ActivityResponse] = Field(default_factory=list)


class _ItineraryResponse(BaseModel):
    days: list[_DayResponse]


def _display(value: str) -> str:
    return value.replace("_", " ")


def _slot(value: str) -> ActivitySlot:
    try:
        return ActivitySlot(value)
    except ValueError:
        return ActivitySlot.morning


def forecast_to_day_weather(forecast: DailyForecast) -> DayWeather:
    """Convert a provider forecast into the weather stored on a day."""
    return DayWeather(
        condition=forecast.condition_code,
        condition_text=forecast.condition_text,
        temperature_max=forecast.temperature_max,
        temperature_min=forecast.temperature_min,
        precipitation_chance=int(forecast.precipitation_chance),
        wind_speed=forecast.wind_speed or 0.0,
    )


def match_weather(
    index: int, day_date: date | None, forecast: list[DailyForecast]
) -> DayWeather | None:
    """Forecast for a day: by date first, then by position."""
    if day_date is not None:
        for item in forecast:
            if item.date == day_date:
                return forecast_to_day_weather(item)
    if index < len(forecast):
        return forecast_to_day_weather(forecast[index])
    return None


def _season_hint(month: int) -> str:
    if month in (12, 1, 2):
        return " (Winter season - suggest cold weather activities)"
    if month in (3, 4, 5):
        return " (Spring - ideal for outdoor activities)"
    if month in (6, 7, 8):
        return " (Summer season - hot weather, suggest shaded areas)"
    return " (Fall - mild weather)"


def build_itinerary_prompt(
    trip: TripRecord, forecast: list[DailyForecast], events: list[LiveEvent]
) -> str:
    """Build the user prompt for itinerary synthesis."""
    not_specified = "Not specified"
    start = not_specified
    season = ""
    if trip.start_date:
        start = trip.start_date.strftime("%B %d, %Y")
        season = _season_hint(trip.start_date.month)

    lines = [
        "You are an experienced travel planner. Create a detailed travel plan based on "
        "the following information.",
        "",
        "## Travel Information",
        f"- Destination: {', '.join(trip.destination_cities)}",
        f"- Duration: {trip.duration_nights} nights",
        f"- Start Date: {start}{season}",
        f"- Travel Type: {_display(trip.companion.value)}",
        f"- Arrival Point: {trip.arrival_point or not_specified}",
        f"- Stay Area: {_display(trip.stay_area.value)}",
        f"- Transport Preference: {_display(trip.transport_mode.value)}",
        f"- Pace: {_display(trip.pace.value)}",
        f"- Budget: {_display(trip.budget.value)}",
        f"- Tourist Attractions Preference: {_display(trip.iconic_preference.value)}",
        f"- Must-See Places: {', '.join(trip.must_visit_places) or not_specified}",
    ]

    if trip.arrival_time or trip.departure_time:
        lines += ["", "## Time Constraints"]
        if trip.arrival_time:
            lines.append(
                f"- FIRST DAY: User arrives around {trip.arrival_time}. Plan first day "
                "activities accordingly (post-arrival fatigue, check-in time)."
            )
        if trip.departure_time:
            lines.append(
                f"- LAST DAY: User leaves around {trip.departure_time}. Plan last day "
                "activities accordingly (check-out, travel to airport)."
            )

    if forecast:
        lines += ["", "## Weather Forecast (For Travel Dates)"]
        for i, item in enumerate(forecast, start=1):
            lines.append(
                f"- Day {i} ({item.date.isoformat()}): {item.condition_text}, "
                f"{int(item.temperature_min)}°C - {int(item.temperature_max)}°C, "
                f"Rain: {int(item.precipitation_chance)}%"
            )
        lines.append(
            "Plan indoor venues on rainy or cold days and outdoor activities on sunny days."
        )

    if events:
        lines += [
            "",
            "## Events & Concerts (During Travel Dates)",
            "These events are happening at the destination during the travel dates:",
        ]
        lines += [f"- {event.prompt_summary}" for event in events]
        lines.append(
            "Include these events at their date and time, use the event name as the "
            "activity name and put the ticket URL in 'tips'."
        )

    lines += [
        "",
        "## Output Format",
        "Respond only with JSON of this shape:",
        '{"days": [{"dayNumber": 1, "title": "...", "summary": "...", "activities": '
        '[{"slot": "morning|noon|afternoon|evening", "name": "...", "description": "...", '
        '"address": "...", "latitude": 48.8584, "longitude": 2.2945, "duration": 90, '
        '"startTime": "09:00", "endTime": "10:30", "cost": "...", "tips": "..."}]}]}',
        "",
        "## Rules",
        f"1. Plan exactly {trip.day_count} days.",
        "2. Give realistic startTime and endTime values (HH:MM) and leave travel time "
        "between activities.",
        "3. Match activity density to the pace and suggestions to the budget and travel type.",
    ]
    return "\n".join(lines)


SYSTEM_PROMPT = (
    "You are a travel itinerary planner. You answer with a single JSON object and no "
    "other text. Only suggest real places in the destination cities."
)


def parse_itinerary_response(
    text: str, start_date: date | None, forecast: list[DailyForecast]
) -> list[TripDay]:
    """Turn a model answer into trip days.

    The JSON object is taken from the first '{' to the last '}' so that
    surrounding prose or code fences are ignored. Days are ordered by
    dayNumber and dated start_date + (dayNumber - 1).

    Raises:
        ItineraryParseError: If no valid itinerary object is found
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ItineraryParseError("No JSON object in synthesis answer")

    try:
        parsed = _ItineraryResponse.model_validate_json(text[start : end + 1])
    except ValidationError as e:
        raise ItineraryParseError(f"Invalid itinerary JSON: {e.error_count()} error(s)") from e

    numbers = [day.day_number for day in parsed.days]
    if len(set(numbers)) != len(numbers):
        raise ItineraryParseError("Duplicate dayNumber in synthesis answer")

    days = []
    for day in sorted(parsed.days, key=lambda d: d.day_number):
        offset = day.day_number - 1
        day_date = start_date + timedelta(days=offset) if start_date else None
        activities = [
            TripActivity(
                slot=_slot(act.slot),
                name=act.name,
                description=act.description,
                address=act.address,
                latitude=act.latitude,
                longitude=act.longitude,
                duration_minutes=act.duration,
                start_time=act.start_time,
                end_time=act.end_time,
                cost=act.cost,
                tips=act.tips,
            )
            for act in day.activities
        ]
        days.append(
            TripDay(
                day_number=day.day_number,
                date=day_date,
                title=day.title,
                summary=day.summary,
                activities=activities,
                weather=match_weather(offset, day_date, forecast),
            )
        )

    return days


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required)."""

    _SLOTS = (
        (ActivitySlot.morning, "09:00", "11:00"),
        (ActivitySlot.noon, "12:30", "13:30"),
        (ActivitySlot.afternoon, "14:30", "17:00"),
        (ActivitySlot.evening, "19:30", "21:30"),
    )

    async def synthesize_itinerary(
        self,
        *,
        trip: TripRecord,
        events: list[LiveEvent],
        forecast: list[DailyForecast],
    ) -> list[TripDay]:
        """Generate a fixed four-activity plan for every day."""
        days = []
        for index in range(trip.day_count):
            city = trip.destination_cities[index % len(trip.destination_cities)]
            day_date = trip.start_date + timedelta(days=index) if trip.start_date else None
            activities = [
                TripActivity(
                    slot=slot,
                    name=f"{city} {slot.value} highlight",
                    description=f"Placeholder {slot.value} activity in {city}",
                    start_time=start,
                    end_time=end,
                )
                for slot, start, end in self._SLOTS
            ]

            day_key = day_date.isoformat() if day_date else None
            for event in events:
                if day_key is not None and event.local_date == day_key:
                    activities.append(
                        TripActivity(
                            slot=ActivitySlot.evening,
                            name=event.name,
                            address=event.venue_name,
                            start_time=event.local_time[:5] if event.local_time else None,
                            tips=f"Tickets: {event.url}" if event.url else None,
                        )
                    )

            days.append(
                TripDay(
                    day_number=index + 1,
                    date=day_date,
                    title=f"Day {index + 1} in {city}",
                    summary="This is a stub day generated without LLM synthesis.",
                    activities=activities,
                    weather=match_weather(index, day_date, forecast),
                )
            )
        return days


class OpenAIClient:
    """OpenAI-backed client for real itinerary synthesis."""

    def __init__(
        self, api_key: str, model: str = "gpt-4o-mini", timeout: float | None = None
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            timeout: Request timeout in seconds; None keeps the library default
        """
        if timeout is None:
            self.client = AsyncOpenAI(api_key=api_key)
        else:
            self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model

    async def synthesize_itinerary(
        self,
        *,
        trip: TripRecord,
        events: list[LiveEvent],
        forecast: list[DailyForecast],
    ) -> list[TripDay]:
        """Generate days using OpenAI API.

        Errors propagate: a failed synthesis fails the run.
        """
        prompt = build_itinerary_prompt(trip, forecast, events)

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.7,
            max_tokens=4096,
        )

        answer = response.choices[0].message.content or ""
        if not answer.strip():
            raise ItineraryParseError("Empty synthesis answer")

        days = parse_itinerary_response(answer, trip.start_date, forecast)
        logger.info(f"[llm] synthesized {len(days)} day(s) trip_id={trip.id} model={self.model}")
        return days


def get_llm_client(settings: Settings | None = None) -> ItinerarySynthesizer:
    """Get synthesis client based on configuration.

    Returns:
        OpenAIClient if an API key is configured, DeterministicStubClient otherwise
    """
    settings = settings or get_settings()
    if settings.openai_api_key:
        logger.info(f"Using OpenAI client with model {settings.synthesis_model}")
        return OpenAIClient(
            api_key=settings.openai_api_key,
            model=settings.synthesis_model,
            timeout=settings.hard_call_timeout_seconds,
        )

    logger.info("No OpenAI API key configured, using deterministic stub client")
    return DeterministicStubClient()
