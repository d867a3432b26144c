"""Configuration management for opsdesk."""

from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/opsdesk.db", description="Path to the SQLite database file")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Redis Configuration (optional, used for real-time event push)
    redis_url: str | None = Field(default=None, description="Redis connection URL (e.g., redis://localhost:6379)")

    # Scheduling Configuration
    schedule_timezone: str = Field(
        default="UTC",
        description="IANA timezone used for bare HH:MM slot markers and calendar day boundaries",
    )
    office_start_hour: int = Field(default=0, ge=0, le=23, description="First bookable hour of a day")
    office_end_hour: int = Field(default=24, ge=1, le=24, description="Hour at which a bookable day ends")

    environment: str = Field(default="development", description="Deployment environment name")

    @field_validator("office_end_hour")
    @classmethod
    def validate_office_window(cls, v: int, info: ValidationInfo) -> int:
        """Validate office hours describe a non-empty window."""
        start = info.data.get("office_start_hour", 0)
        if v <= start:
            msg = "office_end_hour must be after office_start_hour"
            raise ValueError(msg)
        return v


# Application Constants
class Constants:
    """Application-wide constants."""

    # Availability search
    AVAILABILITY_DEFAULT_DURATION_MINUTES: int = 30
    AVAILABILITY_DEFAULT_MAX_SUGGESTIONS: int = 5
    AVAILABILITY_MAX_SUGGESTIONS_CAP: int = 10
    AVAILABILITY_DEFAULT_LOOKAHEAD_DAYS: int = 3
    AVAILABILITY_LOOKAHEAD_DAYS_CAP: int = 7

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100  # Default pagination limit for list queries
    SCHEDULE_QUERY_LIMIT: int = 1000  # Upper bound on bookings read for one person/window

    # Redis Configuration
    REDIS_MAX_CONNECTIONS: int = 10  # Maximum connections in Redis connection pool
    REDIS_CHANNEL_PREFIX: str = "user"  # Per-user pub/sub channel prefix (user:<id>)

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
