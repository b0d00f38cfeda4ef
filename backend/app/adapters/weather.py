"""Weather adapter using Open-Meteo API (keyless, free tier)."""

import logging
from datetime import date, timedelta

import httpx

from backend.app.models.tool_results import DailyForecast

logger = logging.getLogger(__name__)

# WMO weather interpretation codes -> (condition_code, condition_text)
# Docs: https://open-meteo.com/en/docs (WMO Weather interpretation codes)
_WMO_CONDITIONS: dict[int, tuple[str, str]] = {
    0: ("sunny", "Clear sky"),
    1: ("partly_cloudy", "Mainly clear"),
    2: ("partly_cloudy", "Partly cloudy"),
    3: ("cloudy", "Overcast"),
    45: ("fog", "Fog"),
    48: ("fog", "Depositing rime fog"),
    51: ("rain", "Light drizzle"),
    53: ("rain", "Drizzle"),
    55: ("rain", "Dense drizzle"),
    56: ("sleet", "Freezing drizzle"),
    57: ("sleet", "Dense freezing drizzle"),
    61: ("rain", "Slight rain"),
    63: ("rain", "Rain"),
    65: ("heavy_rain", "Heavy rain"),
    66: ("sleet", "Freezing rain"),
    67: ("sleet", "Heavy freezing rain"),
    71: ("snow", "Slight snow"),
    73: ("snow", "Snow"),
    75: ("snow", "Heavy snow"),
    77: ("snow", "Snow grains"),
    80: ("rain", "Rain showers"),
    81: ("rain", "Heavy rain showers"),
    82: ("heavy_rain", "Violent rain showers"),
    85: ("snow", "Snow showers"),
    86: ("snow", "Heavy snow showers"),
    95: ("thunderstorm", "Thunderstorm"),
    96: ("thunderstorm", "Thunderstorm with hail"),
    99: ("thunderstorm", "Thunderstorm with heavy hail"),
}


class WeatherLookupError(Exception):
    """Destination could not be resolved to coordinates."""


def map_weather_code(code: int | None) -> tuple[str, str]:
    """Map a WMO weather code to (condition_code, condition_text).

    Unknown or missing codes map to cloudy.
    """
    if code is None:
        return ("cloudy", "Cloudy")
    return _WMO_CONDITIONS.get(int(code), ("cloudy", "Cloudy"))


def forecast_window(
    start_date: date, day_count: int, today: date, max_forecast_days: int
) -> tuple[date, date] | None:
    """Dates to request, clipped to the provider horizon.

    Returns None when the trip starts in the past or beyond the horizon.
    """
    if day_count < 1:
        return None

    days_until_trip = (start_date - today).days
    if days_until_trip < 0 or days_until_trip >= max_forecast_days:
        return None

    last_trip_day = start_date + timedelta(days=day_count - 1)
    last_forecast_day = today + timedelta(days=max_forecast_days - 1)
    return (start_date, min(last_trip_day, last_forecast_day))


async def geocode_city(
    city: str,
    base_url: str = "https://geocoding-api.open-meteo.com/v1/search",
    client: httpx.AsyncClient | None = None,
) -> tuple[float, float]:
    """Resolve a city name to (latitude, longitude).

    Raises:
        WeatherLookupError: If the city is unknown
        httpx.HTTPError: On network or HTTP errors
    """
    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=10.0)
        close_client = True

    try:
        response = await client.get(
            base_url, params={"name": city, "count": 1, "format": "json"}
        )
        response.raise_for_status()
        results = response.json().get("results") or []
        if not results:
            raise WeatherLookupError(f"Unknown city: {city}")
        return (float(results[0]["latitude"]), float(results[0]["longitude"]))
    finally:
        if close_client:
            await client.aclose()


async def fetch_forecast(
    city: str,
    start_date: date,
    day_count: int,
    *,
    today: date | None = None,
    max_forecast_days: int = 16,
    base_url: str = "https://api.open-meteo.com/v1/forecast",
    geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search",
    client: httpx.AsyncClient | None = None,
) -> list[DailyForecast]:
    """Fetch the daily forecast covering a trip from Open-Meteo.

    Args:
        city: Destination city name
        start_date: First day of the trip
        day_count: Number of trip days (nights + 1)
        today: Reference date for the horizon check (defaults to date.today())
        max_forecast_days: Provider horizon in days from today
        base_url: Open-Meteo forecast URL
        geocoding_url: Open-Meteo geocoding URL
        client: Optional httpx client (for testing with mocks)

    Returns:
        Forecasts for the trip days inside the horizon, in date order. Empty
        when the trip is in the past or too far ahead.

    Raises:
        WeatherLookupError: If the city cannot be geocoded
        httpx.HTTPError: On network or HTTP errors
    """
    window = forecast_window(start_date, day_count, today or date.today(), max_forecast_days)
    if window is None:
        logger.info(f"[weather] no forecast available city={city} start={start_date}")
        return []

    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=10.0)
        close_client = True

    try:
        latitude, longitude = await geocode_city(city, base_url=geocoding_url, client=client)

        # Docs: https://open-meteo.com/en/docs
        params: dict[str, str | float] = {
            "latitude": latitude,
            "longitude": longitude,
            "start_date": window[0].isoformat(),
            "end_date": window[1].isoformat(),
            "daily": (
                "weather_code,temperature_2m_max,temperature_2m_min,"
                "precipitation_probability_max,wind_speed_10m_max"
            ),
            "timezone": "auto",
        }

        response = await client.get(base_url, params=params)
        response.raise_for_status()
        data = response.json()

        # Response structure: {daily: {time: [...], temperature_2m_max: [...], ...}}
        daily = data["daily"]
        codes = daily.get("weather_code") or [None] * len(daily["time"])
        temp_max = daily["temperature_2m_max"]
        temp_min = daily["temperature_2m_min"]
        precip_prob = daily["precipitation_probability_max"]
        wind_speed = daily["wind_speed_10m_max"]

        forecasts = []
        for i, day in enumerate(daily["time"]):
            condition_code, condition_text = map_weather_code(codes[i])
            forecasts.append(
                DailyForecast(
                    date=date.fromisoformat(day),
                    condition_code=condition_code,
                    condition_text=condition_text,
                    temperature_max=temp_max[i] if temp_max[i] is not None else 20.0,
                    temperature_min=temp_min[i] if temp_min[i] is not None else 10.0,
                    precipitation_chance=precip_prob[i] if precip_prob[i] is not None else 0.0,
                    wind_speed=wind_speed[i],
                )
            )

        return forecasts
    finally:
        if close_client:
            await client.aclose()
