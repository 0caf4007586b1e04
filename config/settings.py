"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False

    # ── Progress API (upstream) ──────────────────────────────
    api_base_url: str = "http://localhost:3000"
    api_prefix: str = "/api"
    api_access_token: str = ""
    api_timeout: int = 15  # seconds
    api_max_retries: int = 3  # GET only; mutations are never retried
    api_retry_base_delay: float = 0.5  # seconds, doubles each attempt
    use_fallback_data: bool = False  # serve the bundled dataset instead of the API

    # ── Views ────────────────────────────────────────────────
    notification_ttl: float = 3.0  # seconds a success message stays visible
    navigation_cooldown: float = 0.5  # prev/next debounce window
    all_programs_level: str = "All Programs"

    # ── Session ──────────────────────────────────────────────
    session_cookie_prefix: str = "als"
    session_cookie_max_age: int = 2592000  # 30 days when "remember me"


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
