"""Centralised application settings loaded from environment / .env file."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from ambient_context.engine.models import ContextSource

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Runtime configuration for the ambient context service.

    Values are read from environment variables first, then from a *.env*
    file located at the project root.  Every variable lives in a flat
    namespace (``API_PORT``, ``LOG_LEVEL``...).
    """

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── API server ────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = int(os.getenv("PORT", "8000"))
    api_secret_key: str = "change-me-to-a-random-secret"

    # ── CORS ──────────────────────────────────────────────────
    cors_origins: str = "*"  # comma-separated origins, or "*" for all

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool | None = None  # None: console on a TTY, JSON otherwise

    # ── Engine ────────────────────────────────────────────────
    default_source: ContextSource = ContextSource.MIXED


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
