"""
Configuration management with pydantic-settings.

Every environment variable is validated at startup. A missing required
variable makes the process fail immediately with a clear message.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────────────
    database_url: str = Field(
        description="Async connection string (postgresql+asyncpg://...)",
    )
    database_url_sync: str = Field(
        default="",
        description="Sync connection string for Alembic (postgresql://...)",
    )

    # ── Redis / ARQ ───────────────────────────────────────────────────
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection string for ARQ workers.",
    )

    # ── Notifications ─────────────────────────────────────────────────
    slack_webhook_url: str = Field(
        default="",
        description="Slack incoming webhook URL for generator run alerts.",
    )

    # ── LLM (classification, copywriting, coupon ideas) ───────────────
    llm_model: str = Field(
        default="gpt-4o",
        description="LLM model identifier.",
    )
    llm_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    openai_api_key: str = Field(
        default="",
        description="OpenAI Specific API Key.",
    )
    gemini_api_key: str = Field(
        default="",
        description="Gemini Specific API Key.",
    )

    # ── Affiliate networks ────────────────────────────────────────────
    affiliate_request_timeout: float = Field(
        default=30.0,
        description="Timeout (seconds) for a single affiliate network HTTP call.",
    )
    tracking_source: str = Field(
        default="dealradar",
        description="Source tag appended to affiliate tracking URLs.",
    )

    # ── AI Generator ──────────────────────────────────────────────────
    generator_frequency: str = Field(
        default="4h",
        description="Scheduled run frequency (2h, 4h, 6h, 12h, 24h).",
    )
    generator_schedule_enabled: bool = Field(default=True)
    generator_lock_ttl_minutes: int = Field(
        default=60,
        description="A run lock older than this is considered abandoned.",
    )

    log_level: str = Field(default="INFO")


# Singleton instance, import this everywhere
settings = Settings()  # type: ignore[call-arg]
