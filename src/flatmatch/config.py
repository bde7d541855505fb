"""Configuration system for flatmatch.

Uses pydantic-settings to load configuration from environment variables
and .env files with sensible defaults for the Geneva rental market.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).parent / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Environment variables are prefixed with FLATMATCH_ (e.g., FLATMATCH_RECENCY_HOURS).
    """

    model_config = SettingsConfigDict(
        env_prefix="FLATMATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Polling
    poll_interval_ms: int = Field(
        default=180_000,
        ge=1_000,
        description="Delay between two polling cycles in milliseconds",
    )
    recency_hours: int = Field(
        default=48,
        ge=1,
        description="Only listings created within this window are matched",
    )
    max_concurrent_users: int = Field(
        default=4,
        ge=1,
        description="Number of users processed in parallel within a cycle",
    )

    # Location resolution
    region_scoped: bool = Field(
        default=True,
        description="Enable region-exclusive aliases (ambiguous outside Geneva)",
    )
    locations_file: Path = Field(
        default=DATA_DIR / "known_locations.json",
        description="Canonical locations and alias tables",
    )
    proximity_file: Path = Field(
        default=DATA_DIR / "proximity.json",
        description="Adjacency list over canonical locations",
    )

    # Scoring
    premium_score_threshold: int = Field(
        default=120,
        ge=0,
        description="Total score above which a result is a perfect match",
    )
    exceptional_price_ratio: float = Field(
        default=0.85,
        gt=0,
        le=1,
        description="Rent at or below this share of the budget is exceptional",
    )
    comfort_cap: int = Field(
        default=30,
        ge=0,
        le=30,
        description="Maximum points the comfort block can contribute",
    )
    enforce_dwelling_type: bool = Field(
        default=True,
        description="Veto listings whose dwelling type does not match",
    )

    # Storage
    db_path: Path = Field(
        default=Path("data") / "flatmatch.db",
        description="SQLite database holding listings, users and sent alerts",
    )

    # Telegram delivery
    telegram_bot_token: str | None = Field(
        default=None,
        description="Bot token used to deliver alerts",
    )
    telegram_api_base: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout in seconds for notification calls",
    )


# Singleton instance for easy import
config = Settings()
