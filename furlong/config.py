"""Application configuration using Pydantic settings."""

from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FURLONG_",
        extra="ignore",
    )

    # Database
    db_path: Path = Path("./data/furlong.db")

    # App
    debug: bool = False
    log_level: str = "INFO"
    timezone: str = "America/New_York"

    # Chart ingestion
    max_batch_documents: int = 50
    parse_concurrency: int = 8

    # Identity matching thresholds (0-1)
    verified_confidence: float = 0.9
    suggest_confidence: float = 0.6

    @property
    def database_url(self) -> str:
        """SQLite database URL for SQLAlchemy."""
        return f"sqlite+aiosqlite:///{self.db_path}"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export for convenience
settings = get_settings()


def local_now() -> datetime:
    """Current time in the configured racing timezone."""
    return datetime.now(settings.tz)


def local_now_naive() -> datetime:
    """Current local time as naive datetime (for SQLAlchemy defaults).

    SQLite doesn't handle timezone-aware datetimes well, so we store
    local time as naive datetime.
    """
    return local_now().replace(tzinfo=None)


def local_today() -> date:
    """Today's date in the configured timezone."""
    return local_now().date()
