from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Scrape source (ufcstats.com)
    ufcstats_base_url: str = "http://www.ufcstats.com"
    scrape_timeout_seconds: float = 30.0
    # Caller-side deadline for one whole scrape (fetch + parse)
    scrape_deadline_seconds: float = 90.0
    listing_cache_minutes: int = 30

    # AI prediction providers
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    anthropic_api_key: str | None = None
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_model: str = "claude-3-5-sonnet-latest"
    provider_timeout_seconds: float = 120.0

    # Model used when a request does not pick one ("gpt" or "claude")
    default_model: str = "gpt"

    # Discord admin webhook for lifecycle/sync reports (optional)
    discord_webhook_url: str | None = None
    admin_server_id: str | None = None
    # When enabled, only the admin server is served
    admin_mode: bool = False

    # The Odds API (optional; odds are not fetched without a key)
    odds_api_key: str | None = None
    odds_api_base_url: str = "https://api.the-odds-api.com/v4"
    odds_bookmakers: list[str] = Field(default=["fanduel", "draftkings"])
    odds_cache_minutes: int = 30
    odds_fetch_interval_minutes: int = 180

    # Retention
    odds_retention_days: int = 30
    # Past events whose outcomes are still retried by the daily sync
    outcome_lookback_days: int = 14

    # Schedule (UTC)
    outcome_sync_hour: int = 14
    maintenance_hours: list[int] = Field(default=[4])

    # Database
    db_path: str = "fight_genie.db"

    # Logging
    log_level: str = "INFO"
