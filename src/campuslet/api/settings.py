"""Admin API configuration.

Environment Variables:
    ADMIN_ADAPTER: Persistence strategy, ``transactional`` (SQL, one
        transaction per plan) or ``best_effort`` (REST, sequential steps)
    ADMIN_BCRYPT_ROUNDS: bcrypt cost factor for new account passwords
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AdapterStrategy(StrEnum):
    """Which persistence adapter backs the admin operations."""

    TRANSACTIONAL = "transactional"
    BEST_EFFORT = "best_effort"


class AdminSettings(BaseSettings):
    """Admin API settings loaded from ``ADMIN_`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ADMIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    adapter: AdapterStrategy = Field(
        default=AdapterStrategy.TRANSACTIONAL,
        description="Persistence adapter strategy",
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor",
    )


@lru_cache(maxsize=1)
def get_admin_settings() -> AdminSettings:
    """Get cached admin settings singleton."""
    return AdminSettings()
