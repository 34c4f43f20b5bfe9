"""
Configuration for the DocStore SDK.

Uses pydantic-settings for environment variable loading. Every setting can
be provided through a ``DOCSTORE_`` prefixed variable, e.g.
``DOCSTORE_STORE_BACKEND=http DOCSTORE_STORE_URL=http://es:9200``.
"""

from __future__ import annotations

import logging
from enum import Enum

import json_log_formatter
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class StoreBackend(str, Enum):
    """Supported store backends."""

    MEMORY = "memory"
    HTTP = "http"


class Settings(BaseSettings):
    """SDK configuration loaded from environment."""

    # Store connection
    store_backend: StoreBackend = Field(
        default=StoreBackend.MEMORY, description="Store backend (memory or http)"
    )
    store_url: str = Field(default="http://localhost:9200", description="Store base URL")
    collection: str = Field(default="docstore", description="Collection (index) name")
    request_timeout: float = Field(default=10.0, description="Request timeout seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="text", description="Log format (text or json)")

    model_config = {"env_prefix": "DOCSTORE_"}

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got '{value}'")
        return value


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings.

    Args:
        settings: SDK settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
