from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal
from functools import lru_cache
import logging
import sys

import structlog


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "payments-engine"
    app_version: str = "1.0.0"

    # Logging settings (always written to stderr)
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_rejections: bool = True  # rejected transactions at WARNING instead of DEBUG

    # Pipeline settings
    workers: int = Field(default=1, ge=1)  # > 1 shards accounts by client id
    queue_size: int = Field(default=1024, ge=1)  # per-shard backpressure bound


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    log_level: str = "DEBUG"
    log_format: Literal["json", "text"] = "text"


class ProductionSettings(Settings):
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"


class TestingSettings(Settings):
    log_level: str = "WARNING"  # Reduce noise in tests
    log_rejections: bool = False
    queue_size: int = Field(default=8, ge=1)  # Small queues exercise backpressure


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()


def configure_structlog(settings: Settings) -> None:
    """Render structlog events through stdlib logging, never straight to stdout."""
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(settings: Settings) -> None:
    """Route all structured logging to stderr; stdout carries only the report."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
        force=True,
    )
    configure_structlog(settings)


def ensure_logging() -> None:
    """Configure structlog unless the application already did.

    Without handlers of its own, stdlib logging falls back to stderr for
    warnings and above.
    """
    if not structlog.is_configured():
        configure_structlog(get_settings())
