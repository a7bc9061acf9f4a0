from __future__ import annotations

import logging
import os
from functools import lru_cache

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def _env(name: str, default: str | None = None) -> str | None:
    # Treat empty strings the same as unset variables
    return os.getenv(name) or default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


class Settings(BaseModel):
    # Record store (subscribers table):
    # - DATABASE_URL is a SQLAlchemy URL, e.g. postgresql+psycopg://app@db.example.com/ootd
    # - DATABASE_KEY is the access credential, injected as the URL password
    # Both are required; without them the webhook replies with a config error.
    database_url: str | None = Field(default_factory=lambda: _env("DATABASE_URL"))
    database_key: str | None = Field(default_factory=lambda: _env("DATABASE_KEY"))

    # Counter store for per-sender rate limiting
    redis_url: str = Field(
        default_factory=lambda: _env("REDIS_URL", "redis://localhost:6379/0")
    )

    rate_limit_max: int = Field(default_factory=lambda: _env_int("RATE_LIMIT_MAX", 5))
    rate_limit_window_seconds: int = Field(
        default_factory=lambda: _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)
    )

    log_level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))

    @property
    def record_store_configured(self) -> bool:
        return bool(self.database_url and self.database_key)

    @property
    def log_level_value(self) -> int:
        """Numeric logging level; unknown names fall back to INFO."""
        level = logging.getLevelName(self.log_level.strip().upper())
        return level if isinstance(level, int) else logging.INFO


@lru_cache
def get_settings() -> Settings:
    return Settings()
