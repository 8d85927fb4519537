"""HTTP surface settings: OpenAPI metadata and CORS policy.

Environment variables:
    APP_TITLE, APP_VERSION, APP_DEBUG, APP_DOCS_URL, ...
    CORS_ALLOW_ORIGINS: comma-separated origins (default "*")
    CORS_ALLOW_CREDENTIALS: only valid with explicit origins
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ADMIN_METHODS = ["GET", "POST", "PATCH", "DELETE"]


def _installed_version() -> str:
    try:
        return version("campuslet")
    except PackageNotFoundError:
        return "0.0.0"


class CORSSettings(BaseSettings):
    """Cross-origin policy for the admin console."""

    model_config = SettingsConfigDict(env_prefix="CORS_", extra="ignore")

    allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    allow_methods: list[str] = Field(default_factory=lambda: list(_ADMIN_METHODS))
    allow_headers: list[str] = Field(default_factory=lambda: ["*"])
    expose_headers: list[str] = Field(default_factory=lambda: ["X-Request-ID", "Retry-After"])
    allow_credentials: bool = False
    max_age: int = Field(default=600, ge=0, description="Preflight cache lifetime in seconds")

    @field_validator(
        "allow_origins", "allow_methods", "allow_headers", "expose_headers", mode="before"
    )
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @model_validator(mode="after")
    def _no_credentials_for_any_origin(self) -> CORSSettings:
        if self.allow_credentials and "*" in self.allow_origins:
            msg = "allow_credentials requires explicit allow_origins, not '*'"
            raise ValueError(msg)
        return self


class AppSettings(BaseSettings):
    """Settings consumed by :func:`campuslet.infra.fastapi.create_app`."""

    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    title: str = "Campuslet Admin API"
    description: str = "Administrative operations for the campuslet marketplace"
    version: str = Field(default_factory=_installed_version)
    debug: bool = False
    docs_url: str | None = "/docs"
    redoc_url: str | None = "/redoc"
    openapi_url: str | None = "/openapi.json"
    cors: CORSSettings = Field(default_factory=CORSSettings)
