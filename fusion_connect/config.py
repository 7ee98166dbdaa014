"""
Configuration and settings for the signaling service and call client.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the service and the call client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO", alias="FUSION_LOG_LEVEL")

    # Call history table (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # Signal mailboxes (Redis)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    redis_key_prefix: str = Field(default="fusion:", alias="REDIS_KEY_PREFIX")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="FUSION_USE_IN_MEMORY_BACKENDS"
    )

    # Call client
    signaling_base_url: str = Field(
        default="http://localhost:8000/api", alias="FUSION_SIGNALING_URL"
    )
    request_timeout_seconds: float = Field(
        default=10.0, alias="FUSION_REQUEST_TIMEOUT"
    )
    active_call_path: str = Field(
        default="data/active_call.json", alias="FUSION_ACTIVE_CALL_PATH"
    )
    # Unset disables the simulated connect; answers arrive through the mailbox.
    call_connect_delay_seconds: Optional[float] = Field(
        default=None, alias="FUSION_CALL_CONNECT_DELAY"
    )
    call_missed_timeout_seconds: float = Field(
        default=30.0, alias="FUSION_CALL_MISSED_TIMEOUT"
    )
    call_clear_delay_seconds: float = Field(
        default=1.0, alias="FUSION_CALL_CLEAR_DELAY"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
