"""Live event search adapter using Ticketmaster Discovery API v2."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date, timedelta
from typing import Any

import httpx

from backend.app.models.tool_results import LiveEvent

logger = logging.getLogger(__name__)

# Destination cities mapped to ISO country codes to narrow the search
COUNTRY_CODES: dict[str, str] = {
    # Turkey
    "istanbul": "TR", "ankara": "TR", "izmir": "TR", "antalya": "TR",
    "bodrum": "TR", "cappadocia": "TR", "bursa": "TR", "trabzon": "TR",
    "fethiye": "TR", "gaziantep": "TR", "adana": "TR", "konya": "TR",
    # Europe
    "paris": "FR", "lyon": "FR", "nice": "FR", "marseille": "FR",
    "london": "GB", "manchester": "GB", "edinburgh": "GB",
    "rome": "IT", "milan": "IT", "venice": "IT", "florence": "IT",
    "barcelona": "ES", "madrid": "ES", "seville": "ES",
    "berlin": "DE", "munich": "DE", "frankfurt": "DE", "hamburg": "DE",
    "amsterdam": "NL", "rotterdam": "NL",
    "brussels": "BE",
    "vienna": "AT",
    "prague": "CZ",
    "budapest": "HU",
    "warsaw": "PL", "krakow": "PL",
    "athens": "GR",
    "lisbon": "PT", "porto": "PT",
    "dublin": "IE",
    "copenhagen": "DK",
    "stockholm": "SE",
    "oslo": "NO",
    "helsinki": "FI",
    "zurich": "CH", "geneva": "CH",
    # Americas
    "new york": "US", "los angeles": "US", "chicago": "US", "miami": "US",
    "las vegas": "US", "san francisco": "US", "boston": "US", "washington": "US",
    "toronto": "CA", "vancouver": "CA", "montreal": "CA",
    # Asia and Middle East
    "tokyo": "JP", "osaka": "JP", "kyoto": "JP",
    "seoul": "KR",
    "dubai": "AE", "abu dhabi": "AE",
    "bangkok": "TH",
    "singapore": "SG",
    "hong kong": "HK",
    # Oceania
    "sydney": "AU", "melbourne": "AU",
    # Africa
    "cape town": "ZA", "johannesburg": "ZA",
    "cairo": "EG", "marrakech": "MA",
}

_SKIPPED_STATUSES = frozenset({"cancelled", "postponed"})


class EventSearchError(Exception):
    """Event search returned a non-success status."""

    def __init__(self, city: str, status_code: int) -> None:
        super().__init__(f"Event search failed for {city}: HTTP {status_code}")
        self.city = city
        self.status_code = status_code


def detect_country_code(city: str) -> str | None:
    """ISO country code for a well-known destination city."""
    return COUNTRY_CODES.get(city.strip().lower())


def search_window(start_date: date, night_count: int) -> tuple[str, str]:
    """startDateTime/endDateTime covering the whole stay (UTC, second precision)."""
    end_date = start_date + timedelta(days=night_count)
    return (f"{start_date.isoformat()}T00:00:00Z", f"{end_date.isoformat()}T23:59:59Z")


def _format_price_range(price_ranges: list[dict[str, Any]] | None) -> str | None:
    if not price_ranges:
        return None
    first = price_ranges[0]
    low = first.get("min")
    high = first.get("max")
    currency = first.get("currency", "")
    if low is not None and high is not None:
        return f"{int(low)}-{int(high)} {currency}".strip()
    if low is not None:
        return f"{int(low)}+ {currency}".strip()
    return None


def _pick_image(images: list[dict[str, Any]] | None) -> str | None:
    if not images:
        return None
    preferred = next(
        (img for img in images if img.get("ratio") == "16_9" and (img.get("width") or 0) >= 500),
        None,
    )
    return (preferred or images[0]).get("url")


def parse_event(raw: dict[str, Any]) -> LiveEvent | None:
    """Convert one Discovery API event into a LiveEvent.

    Returns None for test, cancelled, postponed or malformed events.
    """
    event_id = raw.get("id")
    name = raw.get("name")
    if not isinstance(event_id, str) or not isinstance(name, str):
        return None
    if raw.get("test") is True:
        return None

    dates = raw.get("dates") or {}
    start = dates.get("start") or {}
    status_code = ((dates.get("status") or {}).get("code") or "").lower()
    if status_code in _SKIPPED_STATUSES:
        return None

    venue_name = None
    venue_city = None
    venues = (raw.get("_embedded") or {}).get("venues") or []
    if venues:
        venue_name = venues[0].get("name")
        venue_city = (venues[0].get("city") or {}).get("name")

    category = None
    genre = None
    classifications = raw.get("classifications") or []
    if classifications:
        category = (classifications[0].get("segment") or {}).get("name")
        genre = (classifications[0].get("genre") or {}).get("name")

    return LiveEvent(
        id=event_id,
        name=name,
        url=raw.get("url"),
        local_date=start.get("localDate"),
        local_time=start.get("localTime"),
        venue_name=venue_name,
        venue_city=venue_city,
        category=category,
        genre=genre,
        image_url=_pick_image(raw.get("images")),
        price_range=_format_price_range(raw.get("priceRanges")),
    )


def parse_events_response(data: dict[str, Any]) -> list[LiveEvent]:
    """Parse _embedded.events[]; a missing list means no events."""
    raw_events = (data.get("_embedded") or {}).get("events") or []
    return [event for event in (parse_event(raw) for raw in raw_events) if event is not None]


async def search_city_events(
    city: str,
    start_date: date,
    night_count: int,
    *,
    api_key: str,
    base_url: str = "https://app.ticketmaster.com/discovery/v2",
    size: int = 50,
    client: httpx.AsyncClient,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[LiveEvent]:
    """Search events in one city (GET /discovery/v2/events.json).

    A 429 response is retried once after one second.

    Raises:
        EventSearchError: On a non-200 response
        httpx.HTTPError: On network errors
    """
    start_str, end_str = search_window(start_date, night_count)
    params: dict[str, str | int] = {
        "apikey": api_key,
        "city": city,
        "startDateTime": start_str,
        "endDateTime": end_str,
        "sort": "date,asc",
        "size": size,
        "locale": "*",
    }
    country_code = detect_country_code(city)
    if country_code:
        params["countryCode"] = country_code

    url = f"{base_url}/events.json"
    response = await client.get(url, params=params)

    if response.status_code == 429:
        logger.info(f"[events] rate limited, retrying city={city}")
        await sleep_fn(1.0)
        response = await client.get(url, params=params)

    if response.status_code != 200:
        raise EventSearchError(city, response.status_code)

    return parse_events_response(response.json())


async def fetch_events_for_trip(
    cities: list[str],
    start_date: date | None,
    night_count: int,
    *,
    api_key: str,
    base_url: str = "https://app.ticketmaster.com/discovery/v2",
    client: httpx.AsyncClient | None = None,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[LiveEvent]:
    """Find live events in every destination city during the stay.

    Args:
        cities: Destination cities
        start_date: First day of the trip (today when unset)
        night_count: Number of nights
        api_key: Ticketmaster API key; no request is made when empty
        base_url: Discovery API base URL
        client: Optional httpx client (for testing with mocks)
        sleep_fn: Sleep used before retrying a rate-limited request

    Returns:
        Events deduplicated by id and ordered by local date. A city whose
        search fails contributes nothing.
    """
    if not api_key:
        return []

    start = start_date or date.today()

    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=15.0)
        close_client = True

    events: list[LiveEvent] = []
    try:
        for city in cities:
            try:
                events.extend(
                    await search_city_events(
                        city,
                        start,
                        night_count,
                        api_key=api_key,
                        base_url=base_url,
                        client=client,
                        sleep_fn=sleep_fn,
                    )
                )
            except (EventSearchError, httpx.HTTPError) as e:
                logger.warning(f"[events] search skipped city={city}: {e}")
    finally:
        if close_client:
            await client.aclose()

    seen: set[str] = set()
    unique: list[LiveEvent] = []
    for event in events:
        if event.id not in seen:
            seen.add(event.id)
            unique.append(event)

    unique.sort(key=lambda e: e.local_date or "")
    return unique
