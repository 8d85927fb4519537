"""REST store configuration settings.

Loaded from environment variables with REST_STORE_ prefix.

Environment Variables:
    REST_STORE_BASE_URL: PostgREST endpoint, e.g. https://xyz.supabase.co/rest/v1
    REST_STORE_API_KEY: Service API key (sent as apikey and bearer token)
    REST_STORE_TIMEOUT: Per-request timeout in seconds
    REST_STORE_MAX_RETRIES: Retries for idempotent requests (GET, DELETE)
    REST_STORE_RETRY_BACKOFF: Base backoff in seconds, grows linearly
    REST_STORE_PAGE_SIZE: Rows per read request; keep at or below db-max-rows
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RestStoreSettings(BaseSettings):
    """REST store configuration loaded from environment variables.

    Example:
        >>> settings = RestStoreSettings()
        >>> settings.timeout
        10.0
        >>> settings.is_configured()
        False
    """

    model_config = SettingsConfigDict(
        env_prefix="REST_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(default="", description="PostgREST base URL")
    api_key: str = Field(
        default="",
        repr=False,  # Security: never log the service key
        description="Service API key",
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-request timeout in seconds",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries for idempotent requests on transport errors",
    )
    retry_backoff: float = Field(
        default=0.2,
        ge=0,
        le=10,
        description="Base retry backoff in seconds (linear)",
    )
    page_size: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Rows per paged read; at most the server row cap",
    )

    def is_configured(self) -> bool:
        """Check that the endpoint and key are set (non-throwing)."""
        return bool(self.base_url and self.api_key)


@lru_cache(maxsize=1)
def get_rest_store_settings() -> RestStoreSettings:
    """Get cached REST store settings singleton.

    Returns:
        RestStoreSettings instance loaded from environment.
    """
    return RestStoreSettings()
