"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trendwatch.crawler.stealth.profiles import REGION_PROFILES


class CrawlerSettings(BaseSettings):
    """Browser and extraction settings."""

    model_config = SettingsConfigDict(
        env_prefix="CRAWLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    headless: bool = Field(default=True, description="Run browser in headless mode")
    navigation_timeout_ms: int = Field(default=45000, description="Timeout for a single page.goto in ms")
    evaluate_timeout_s: float = Field(default=15.0, description="Timeout for a single page evaluation in seconds")
    max_retries: int = Field(default=3, description="Max browser launch attempts")
    retry_delay: float = Field(default=2.0, description="Base delay between launch attempts (linear backoff)")
    scroll_steps: int = Field(default=12, description="Mouse wheel steps per load-more pass")
    scroll_wait_ms: int = Field(default=900, description="Base wait after each wheel step in ms")
    stop_threshold: int = Field(default=120, description="Stop visiting URLs once this many unique videos are collected")
    inter_url_delay_min: float = Field(default=1.0, description="Minimum pause between candidate URLs in seconds")
    inter_url_delay_max: float = Field(default=3.0, description="Maximum pause between candidate URLs in seconds")
    enrich_batch_size: int = Field(default=6, ge=1, description="Concurrent video pages per enrichment batch")
    enrich_max_pages: int = Field(default=120, ge=0, description="Max video pages visited for enrichment")

    @model_validator(mode="after")
    def check_delay_bounds(self) -> "CrawlerSettings":
        if self.inter_url_delay_max < self.inter_url_delay_min:
            raise ValueError("inter_url_delay_max must be >= inter_url_delay_min")
        return self


class TrendingSettings(BaseSettings):
    """Ranking, caching and request settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRENDING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_limit: int = Field(default=50, ge=1, description="Videos returned when no limit is requested")
    max_limit: int = Field(default=100, ge=1, description="Upper clamp for the requested limit")
    cache_ttl_seconds: int = Field(default=900, ge=1, description="Lifetime of a cached ranking")
    request_timeout_seconds: float = Field(default=240.0, description="Hard bound on one scrape")
    region: str = Field(default="it", description="Default region profile")

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Only regions with a fingerprint profile are accepted."""
        v = v.lower()
        if v not in REGION_PROFILES:
            raise ValueError(
                f"Unknown region {v!r}, expected one of {sorted(REGION_PROFILES)}"
            )
        return v


class ApiSettings(BaseSettings):
    """HTTP API settings."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    key: Optional[str] = Field(default=None, description="Shared secret; gate disabled when unset")
    key_header: str = Field(default="X-API-Key", description="Header carrying the shared secret")
    host: str = Field(default="0.0.0.0", description="Bind address for `python -m trendwatch`")
    port: int = Field(default=8080, description="Bind port for `python -m trendwatch`")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    @property
    def crawler(self) -> CrawlerSettings:
        return CrawlerSettings()

    @property
    def trending(self) -> TrendingSettings:
        return TrendingSettings()

    @property
    def api(self) -> ApiSettings:
        return ApiSettings()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (clear cache and return new instance).

    Call this when .env file is updated to pick up new values.
    """
    get_settings.cache_clear()
    return get_settings()
