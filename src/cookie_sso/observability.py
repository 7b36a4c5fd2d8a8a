"""Structured logging configuration using structlog.

Engine modules log through the standard ``logging`` module with event-style
messages and ``extra=`` fields. ``configure_logging`` installs a structlog
``ProcessorFormatter`` on the root logger so those records are rendered with
the same pipeline as native structlog loggers:

- JSON output for production environments
- Console output for development
- ISO 8601 UTC timestamps
- Redaction of sensitive fields (cookies, secrets, tokens)

Usage:
    # During application startup
    from cookie_sso.observability import configure_logging
    configure_logging()

    # In application code
    from cookie_sso.observability import get_logger
    logger = get_logger(__name__)
    logger.info("sso_plugin_registered", namespace="admin")
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import MutableMapping

Processor = structlog.types.Processor

SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "authorization",
        "cookie",
        "set_cookie",
        "cookie_value",
        "secret",
        "jwt_secret",
        "api_key",
        "bearer",
        "credential",
    }
)

REDACTED_VALUE: str = "***REDACTED***"

_VALID_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class LoggingSettings(BaseSettings):
    """Logging configuration settings from environment variables.

    Loads configuration from environment variables:
    - LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Environment name (development, staging, production, test)

    Example:
        >>> LoggingSettings(log_level="debug", environment="production").use_json_logs
        True
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Minimum log level to output",
    )
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Environment name for format selection",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        return v.upper() if isinstance(v, str) else str(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v not in _VALID_LEVELS:
            msg = f"log_level must be one of {sorted(_VALID_LEVELS)}"
            raise ValueError(msg)
        return v

    @property
    def use_json_logs(self) -> bool:
        return self.environment == "production"

    @property
    def log_level_int(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


class SensitiveDataProcessor:
    """Structlog processor to redact sensitive fields from log context.

    Redacts values for fields matching:
    1. Exact field names in SENSITIVE_FIELDS (case-insensitive)
    2. Field names containing "password", "secret", "token" or "cookie"

    Example:
        >>> processor = SensitiveDataProcessor()
        >>> processor(None, "info", {"event": "login", "sso_cookie": "abc"})["sso_cookie"]
        '***REDACTED***'
    """

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        for key in list(event_dict.keys()):
            if self._is_sensitive(key):
                event_dict[key] = REDACTED_VALUE
        return event_dict

    def _is_sensitive(self, key: str) -> bool:
        key_lower = key.lower()
        if key_lower in SENSITIVE_FIELDS:
            return True
        # Substring match for compound names (e.g., sso_cookie, jwt_secret)
        return any(part in key_lower for part in ("password", "secret", "token", "cookie"))


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached LoggingSettings instance.

    Clear cache with ``get_logging_settings.cache_clear()`` for testing.
    """
    return LoggingSettings()


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        SensitiveDataProcessor(),
    ]


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog and route standard library logging through it.

    Should be called once during application startup (in the lifespan
    handler). Calling it again replaces the previously installed handler.

    Args:
        settings: Optional LoggingSettings instance. If not provided,
            settings are loaded from environment variables.
    """
    if settings is None:
        settings = get_logging_settings()

    shared = _shared_processors()
    # ConsoleRenderer formats exceptions itself; JSON needs them pre-rendered.
    exc_processors: list[Processor] = []
    renderer: Processor
    if settings.use_json_logs:
        exc_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            *shared,
            *exc_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level_int),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *exc_processors,
            renderer,
        ],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.set_name("cookie_sso")

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == "cookie_sso"]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.log_level_int)


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger, optionally bound to a module name."""
    logger = structlog.get_logger()
    if name is not None:
        logger = logger.bind(logger=name)
    return logger
