#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Application configuration.

All values can be overridden via environment variables or a .env file.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from unfold._version import __version__ as _pkg_version


# -----------------------------------------------------------------------------

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────

    app_name: str = "Unfold"
    app_version: str = _pkg_version
    base_url: str = "http://localhost:8000"
    debug: bool = False
    environment: Literal["development", "testing", "production"] = "development"
    log_level: str = "INFO"

    # ── Local store ────────────────────────────────────────────────────────

    database_url: str = "sqlite+aiosqlite:///./unfold.db"
    db_echo: bool = False

    # ── Relays ─────────────────────────────────────────────────────────────

    default_relays: list[str] = [
        "wss://theforest.nostr1.com",
        "wss://nostr.land",
        "wss://relay.primal.net",
    ]
    relay_timeout: float = 8.0          # seconds, per relay query
    persist_network_events: bool = True

    # ── Cache ──────────────────────────────────────────────────────────────

    cache_backend: Literal["memory", "redis"] = "memory"
    cache_redis_url: str = ""
    cache_key_prefix: str = "unfold:"

    swr_fresh_ttl: int = 120            # site config: serve without revalidation
    swr_stale_ttl: int = 3600           # site config: serve stale, refresh in background
    placeholder_ttl: int = 30           # lifetime of a placeholder after a failed first fetch

    document_fresh_ttl: int = 300
    document_stale_ttl: int = 3600

    content_fresh_ttl: int = 300        # category / post listings
    content_stale_ttl: int = 3600

    # ── Sites ──────────────────────────────────────────────────────────────

    default_theme: str = "default"

    # ── CORS ───────────────────────────────────────────────────────────────

    cors_origins: list[str] = [
        "http://localhost:8000",
        "http://localhost:3000",
    ]

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"


# -----------------------------------------------------------------------------

@lru_cache
def get_settings() -> Settings:
    return Settings()


# -----------------------------------------------------------------------------
