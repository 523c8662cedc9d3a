"""Application configuration using Pydantic settings."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str):
    """Simple enum-like helper for environment tagging."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="POMOROOM_", env_file=".env", env_file_encoding="utf-8"
    )

    app_name: str = Field(default="Pomoroom Room Service", description="Service name")
    api_prefix: str = Field(default="/api", description="Base API prefix")
    environment: str = Field(default=Environment.DEVELOPMENT, description="Runtime environment tag")
    log_level: str = Field(default="INFO", description="Root logging level")

    max_participants: int = Field(
        default=20, ge=1, description="Distinct participants allowed per room"
    )
    inactivity_timeout_seconds: int = Field(
        default=2 * 60 * 60, gt=0, description="Idle time after which a room is swept"
    )
    room_code_length: int = Field(default=6, ge=4, description="Characters per room code")
    room_code_max_attempts: int = Field(
        default=32, ge=1, description="Collision retries before giving up on a new code"
    )

    default_work_duration: int = Field(default=25, gt=0, description="Work phase, minutes")
    default_short_break_duration: int = Field(
        default=5, gt=0, description="Short break, minutes"
    )
    default_long_break_duration: int = Field(
        default=15, gt=0, description="Long break, minutes"
    )
    default_long_break_interval: int = Field(
        default=4, ge=2, description="Completed work phases per long break"
    )

    poll_interval: float = Field(
        default=1.0, gt=0, description="Seconds between client room polls"
    )
    poll_failure_threshold: int = Field(
        default=3, ge=1, description="Consecutive poll failures before reporting disconnect"
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings instance."""
    return AppSettings()
