from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "enrollment-engine"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    # Database
    DATABASE_URL: str = "sqlite:///./enrollments.db"

    # Redis (locks + Celery broker)
    REDIS_URL: str = "redis://localhost:6379/0"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"  # Comma-separated or "*"

    # Per-event lock: auto-expiry of a held lock and max wait to acquire it
    EVENT_LOCK_TIMEOUT: float = Field(default=10.0, gt=0)
    EVENT_LOCK_BLOCKING_TIMEOUT: float = Field(default=5.0, gt=0)

    # Reminders for events about to start
    UPCOMING_EVENT_WINDOW_MINUTES: int = Field(default=30, ge=1)
    REMINDER_INTERVAL_MINUTES: int = Field(default=5, ge=1)

    @property
    def cors_origins(self) -> list[str]:
        if self.CORS_ALLOWED_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


config = get_settings()


def get_redis_url() -> str:
    return config.REDIS_URL
