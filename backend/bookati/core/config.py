# backend/bookati/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s", env_path)
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "production", "test"] = Field(
        default="development",
        description="Deployment environment name",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    # Database
    database_url: str = Field(
        default="sqlite:///./bookati.db",
        description="SQLAlchemy database URL (PostgreSQL in production)",
    )
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 10
    db_pool_recycle: int = 300
    sqlite_busy_timeout_seconds: float = Field(
        default=30.0,
        description="How long a SQLite writer waits for the database lock",
    )

    # Booking locks
    lock_default_ttl_seconds: int = Field(
        default=120,
        description="Lock lifetime used when the client does not ask for one",
    )
    lock_min_ttl_seconds: int = 1
    lock_max_ttl_seconds: int = 900
    lock_sweep_interval_seconds: int = Field(
        default=60,
        description="Period of the expired-lock sweep",
    )

    # Bulk booking
    bulk_booking_max_items: int = Field(
        default=50,
        description="Most locks one bulk booking request may convert",
    )

    # Slot generation
    slot_granularity_minutes: int = Field(
        default=60,
        description="Fallback slot length when neither shift nor service defines one",
    )
    slot_generation_max_days: int = 366

    # Package quota
    package_quota_restore_on_completion: bool = Field(
        default=True,
        description="Give package quota back when an active booking is completed",
    )

    # Background jobs
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: Optional[str] = None
    reconciliation_hour_utc: int = Field(default=3, ge=0, le=23)
    outbox_dispatch_interval_seconds: int = 30

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="after")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()

    @model_validator(mode="after")
    def _validate_lock_bounds(self) -> "Settings":
        if self.lock_min_ttl_seconds < 1:
            raise ValueError("LOCK_MIN_TTL_SECONDS must be at least 1")
        if self.lock_max_ttl_seconds < self.lock_min_ttl_seconds:
            raise ValueError("LOCK_MAX_TTL_SECONDS must be >= LOCK_MIN_TTL_SECONDS")
        if not (
            self.lock_min_ttl_seconds <= self.lock_default_ttl_seconds <= self.lock_max_ttl_seconds
        ):
            raise ValueError("LOCK_DEFAULT_TTL_SECONDS must fall inside the min/max TTL range")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def resolved_result_backend(self) -> str:
        return self.celery_result_backend or self.celery_broker_url


settings = Settings()
