"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # BoardGameGeek XML API
    bgg_base_url: str = "https://boardgamegeek.com"
    bgg_user_agent: str = "SecondTurnGames/2.0 (info@secondturn.games)"
    bgg_api_token: Optional[str] = None  # sent as a Bearer token when set
    bgg_timeout_seconds: float = 15.0

    # Rate limiting (BGG asks for roughly one request per second)
    bgg_rate_limit_delay_seconds: float = 1.0
    bgg_max_requests_per_hour: int = 800
    bgg_max_batch_size: int = 15  # ids per /thing request, larger batches time out
    bgg_queued_retry_attempts: int = 3  # retries when BGG answers 202 (queued)

    # Cache settings
    metadata_ttl_seconds: int = 7 * 24 * 60 * 60  # 7 days
    search_ttl_seconds: int = 30 * 60  # 30 minutes
    cache_max_entries: int = 1000  # per namespace

    # Endpoint limits
    batch_max_ids: int = 20
    enhance_max_ids: int = 10
    search_page_size: int = 20
    search_metadata_batch_size: int = 15
    min_query_length: int = 2

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @model_validator(mode="after")
    def _check_ttl_ordering(self) -> "Settings":
        # Metadata changes rarely, search relevance drifts faster
        if self.metadata_ttl_seconds < self.search_ttl_seconds:
            raise ValueError(
                "metadata_ttl_seconds must be >= search_ttl_seconds "
                f"({self.metadata_ttl_seconds} < {self.search_ttl_seconds})"
            )
        return self


settings = Settings()
