"""One log stream for stdlib and structlog records.

Library modules stay on the standard library: ``logging.getLogger(__name__)``
with a snake_case event as the message and context in ``extra=``. The
application calls :func:`configure_logging` once in its lifespan; from then
on stdlib records and native structlog loggers share a processor chain:

    contextvars (request_id) -> level, logger name, UTC timestamp
    -> redaction of secrets -> JSON (production) or console rendering

Example:
    >>> logger = logging.getLogger("campuslet.domain.admin.orchestrator")
    >>> logger.info("deletion_planned", extra={"root": "Landlord(7)", "steps": 8})
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Literal

import structlog
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import MutableMapping

    from structlog.types import Processor

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

REDACTED_VALUE = "***REDACTED***"

# Keys redacted outright; any key containing one of _SENSITIVE_FRAGMENTS is too
SENSITIVE_FIELDS = frozenset(
    {"authorization", "api_key", "apikey", "bearer", "credential", "service_key"}
)
_SENSITIVE_FRAGMENTS = ("password", "token", "secret")


class LoggingSettings(BaseSettings):
    """``LOG_LEVEL`` (case-insensitive) and ``ENVIRONMENT``.

    Only ``ENVIRONMENT=production`` switches to JSON lines.
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    log_level: LogLevel = Field(
        default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level")
    )
    environment: str = Field(
        default="development", validation_alias=AliasChoices("ENVIRONMENT", "environment")
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def use_json_logs(self) -> bool:
        return self.environment == "production"

    @property
    def log_level_int(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level]


class SensitiveDataProcessor:
    """Replace the values of secret-looking keys with :data:`REDACTED_VALUE`.

    >>> SensitiveDataProcessor()(None, "info", {"event": "x", "password_hash": "$2b$"})
    {'event': 'x', 'password_hash': '***REDACTED***'}
    """

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        for key in [k for k in event_dict if _is_sensitive(k)]:
            event_dict[key] = REDACTED_VALUE
        return event_dict


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return lowered in SENSITIVE_FIELDS or any(part in lowered for part in _SENSITIVE_FRAGMENTS)


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings()


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        SensitiveDataProcessor(),
    ]


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Install the processor chain and a single stdout handler on the root logger.

    Idempotent: a second call replaces the handler instead of adding one.
    """
    settings = settings or get_logging_settings()
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if settings.use_json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level_int),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            # ExtraAdder first so ``extra=`` keys pass through redaction
            foreign_pre_chain=[structlog.stdlib.ExtraAdder(), *_pre_chain()],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level_int)


def get_logger(name: str | None = None) -> Any:
    """Native structlog logger, optionally bound to ``logger=name``."""
    logger = structlog.get_logger()
    return logger.bind(logger=name) if name is not None else logger
