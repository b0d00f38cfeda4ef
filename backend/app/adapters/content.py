"""Content fetchers consumed by the generation pipeline."""

from datetime import date
from typing import Protocol

import httpx

from backend.app.adapters.events import fetch_events_for_trip
from backend.app.adapters.weather import fetch_forecast
from backend.app.config import Settings
from backend.app.llm.client import ItinerarySynthesizer, get_llm_client
from backend.app.models.tool_results import DailyForecast, LiveEvent
from backend.app.models.trip import TripDay, TripRecord


class ContentFetchers(Protocol):
    """Weather, live events and itinerary synthesis.

    Weather and events are enrichment: callers treat their failures as empty
    results. Synthesis failures are fatal to a run.
    """

    async def weather(self, city: str, start_date: date, day_count: int) -> list[DailyForecast]:
        """Daily forecast for the trip days."""
        ...

    async def search_events(
        self, cities: list[str], start_date: date | None, night_count: int
    ) -> list[LiveEvent]:
        """Live events in the destination cities during the stay."""
        ...

    async def synthesize_itinerary(
        self,
        trip: TripRecord,
        events: list[LiveEvent],
        forecast: list[DailyForecast],
    ) -> list[TripDay]:
        """Day-by-day plan for the trip using only the confirmed events."""
        ...


class HttpContentFetchers:
    """ContentFetchers backed by Open-Meteo, Ticketmaster and the LLM client."""

    def __init__(
        self,
        settings: Settings,
        *,
        synthesizer: ItinerarySynthesizer | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._synthesizer = synthesizer or get_llm_client(settings)
        self._client = client

    async def weather(self, city: str, start_date: date, day_count: int) -> list[DailyForecast]:
        """Forecast from Open-Meteo."""
        return await fetch_forecast(
            city,
            start_date,
            day_count,
            max_forecast_days=self._settings.max_forecast_days,
            base_url=self._settings.weather_base_url,
            geocoding_url=self._settings.geocoding_base_url,
            client=self._client,
        )

    async def search_events(
        self, cities: list[str], start_date: date | None, night_count: int
    ) -> list[LiveEvent]:
        """Events from Ticketmaster Discovery."""
        return await fetch_events_for_trip(
            cities,
            start_date,
            night_count,
            api_key=self._settings.ticketmaster_api_key,
            base_url=self._settings.ticketmaster_base_url,
            client=self._client,
        )

    async def synthesize_itinerary(
        self,
        trip: TripRecord,
        events: list[LiveEvent],
        forecast: list[DailyForecast],
    ) -> list[TripDay]:
        """Itinerary from the configured LLM client."""
        return await self._synthesizer.synthesize_itinerary(
            trip=trip, events=events, forecast=forecast
        )
