"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database (in-memory store and ledger when unset)
    database_url: str | None = None

    # Logging
    log_level: str = "INFO"

    # External APIs
    openai_api_key: str = ""
    synthesis_model: str = "gpt-4o-mini"
    ticketmaster_api_key: str = ""
    ticketmaster_base_url: str = "https://app.ticketmaster.com/discovery/v2"
    weather_base_url: str = "https://api.open-meteo.com/v1/forecast"
    geocoding_base_url: str = "https://geocoding-api.open-meteo.com/v1/search"

    # Forecast horizon of the weather provider (days from today)
    max_forecast_days: int = 16

    # Timeouts (seconds); hard calls are unbounded unless configured
    soft_fetch_timeout_seconds: float = 15.0
    hard_call_timeout_seconds: float | None = None

    # Pacing between incremental day reveals (milliseconds)
    day_reveal_delay_ms: int = 300

    # Credits
    welcome_credits: int = 2
    refund_credit_on_failure: bool = False

    # Failed sessions stay available for retry this long (seconds)
    failed_session_ttl_seconds: float = 900.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
