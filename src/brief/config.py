"""Centralised application configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/brief/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class AppConfig(BaseModel):
    """Application runtime configuration."""

    port: int = 8080
    storage_secret: SecretStr = SecretStr("dev-secret-change-me")
    log_dir: Path = Path("logs")
    reload: bool = False


class StorageConfig(BaseModel):
    """Key-value storage backend for persisted annotations."""

    backend: Literal["database", "memory"] = "database"
    database_url: str = "sqlite+aiosqlite:///brief.db"
    echo: bool = False


class AnnotateConfig(BaseModel):
    """Selection and notification timing for the reader page."""

    selection_debounce_ms: int = 20
    toast_seconds: float = 2.5

    @field_validator("selection_debounce_ms")
    @classmethod
    def non_negative_debounce(cls, value: int) -> int:
        if value < 0:
            msg = "ANNOTATE__SELECTION_DEBOUNCE_MS must not be negative"
            raise ValueError(msg)
        return value


class ExportConfig(BaseModel):
    """Closing instruction lines appended to exported change requests."""

    instruction: str = "Please apply these annotations to the source document."
    folder_instruction: str = (
        "Please apply these annotations to the source documents."
    )


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``STORAGE__BACKEND``, ``STORAGE__DATABASE_URL``, ``APP__PORT``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    storage: StorageConfig = StorageConfig()
    annotate: AnnotateConfig = AnnotateConfig()
    export: ExportConfig = ExportConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
