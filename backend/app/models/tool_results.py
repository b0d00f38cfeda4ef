"""Tool result models - external data shapes."""

from datetime import date

from pydantic import BaseModel, Field


class DailyForecast(BaseModel):
    """Daily weather forecast for a destination."""

    date: date
    condition_code: str
    condition_text: str
    temperature_max: float
    temperature_min: float
    precipitation_chance: float = Field(..., ge=0, le=100, description="Percent")
    wind_speed: float | None = None


class LiveEvent(BaseModel):
    """Live event (concert, match, show) found for the trip window."""

    id: str
    name: str
    url: str | None = None
    local_date: str | None = Field(None, description="YYYY-MM-DD")
    local_time: str | None = Field(None, description="HH:MM or HH:MM:SS")
    venue_name: str | None = None
    venue_city: str | None = None
    category: str | None = None
    genre: str | None = None
    image_url: str | None = None
    price_range: str | None = None

    @property
    def prompt_summary(self) -> str:
        """One-line description used in the synthesis prompt."""
        parts = [f'"{self.name}"']
        if self.venue_name:
            parts.append(self.venue_name)
        if self.venue_city:
            parts.append(self.venue_city)
        if self.local_date:
            when = self.local_date
            if self.local_time:
                when += f" {self.local_time[:5]}"
            parts.append(when)
        if self.category and self.genre:
            parts.append(f"[{self.category} / {self.genre}]")
        elif self.category:
            parts.append(f"[{self.category}]")
        if self.price_range:
            parts.append(f"~{self.price_range}")
        if self.url:
            parts.append(f"Tickets: {self.url}")
        return " - ".join(parts)
