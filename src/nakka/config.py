"""
Configuration management for the Nakka scraper.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for local development. The API key should be set via
environment variables or a .env file, never committed.

Usage:
    from nakka.config import settings
    print(settings.nakka_base_url)
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Target Site
    # ==========================================================================

    nakka_base_url: str = Field(
        default="https://n01darts.com/n01/tournament",
        description="Root of the n01 tournament site (search, comp.php, n01_view.html)",
    )
    nakka_history_api_url: str = Field(
        default="https://tk2-228-23746.vs.sakura.ne.jp/n01/tournament/n01_history.php",
        description="Match history endpoint used as the first date source",
    )
    nakka_completed_status: int = Field(
        default=40,
        description="Tournament status code the site uses for finished events",
    )

    # ==========================================================================
    # Browser Posture
    # ==========================================================================

    scrape_constrained: bool = Field(
        default=False,
        description=(
            "Run with the memory-constrained browser posture (serverless hosts). "
            "Only changes resource loading and viewport, never extraction."
        ),
    )
    scrape_headless: bool = Field(
        default=True,
        description="Run browser in headless mode for scraping",
    )
    scrape_executable_path: Optional[str] = Field(
        default=None,
        description="Path to a Chromium binary (e.g. a slimmed serverless build)",
    )

    # ==========================================================================
    # Timeouts (milliseconds)
    # ==========================================================================

    scrape_launch_timeout: int = Field(
        default=30000,
        description="Browser launch timeout",
    )
    scrape_navigation_timeout: int = Field(
        default=60000,
        description="Navigation timeout for the search and tournament pages",
    )
    scrape_match_navigation_timeout: int = Field(
        default=45000,
        description="Navigation timeout for match pages and the results tab",
    )
    scrape_selector_timeout: int = Field(
        default=12000,
        description="Timeout for selector, frame and content-readiness waits",
    )
    scrape_network_idle_timeout: int = Field(
        default=5000,
        description="Ceiling for the network-quiescence wait (tolerated on expiry)",
    )
    scrape_content_wait_timeout: int = Field(
        default=10000,
        description="Wait for dynamically rendered match dates on the results tab",
    )
    scrape_history_timeout: int = Field(
        default=10000,
        description="Ceiling for the in-page history API fetch (expiry counts as no date)",
    )
    scrape_interstitial_timeout: int = Field(
        default=15000,
        description="Wait for real content behind an anti-bot interstitial",
    )
    scrape_results_settle_ms: int = Field(
        default=5000,
        description="Settle delay after the results tab reports network idle",
    )

    # ==========================================================================
    # Retry Policy
    # ==========================================================================

    scrape_max_retries: int = Field(
        default=3,
        description="Maximum attempts (including the first) for retryable failures",
    )
    scrape_retry_base_delay: float = Field(
        default=1.0,
        description="Initial retry delay in seconds (doubles each attempt)",
    )

    # ==========================================================================
    # Date Resolution
    # ==========================================================================

    scrape_trust_api_date: bool = Field(
        default=False,
        description=(
            "Use the search payload's numeric t_date before scraping the results "
            "tab. Off until the field is confirmed against live data."
        ),
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================

    api_key: Optional[str] = Field(
        default=None,
        description="Shared secret expected in the X-API-Key header (unset = open)",
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to",
    )
    api_port: int = Field(
        default=8000,
        description="Port for the API server",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("nakka_base_url", "nakka_history_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("scrape_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("scrape_max_retries must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()
