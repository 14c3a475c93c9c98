"""Application configuration for the SaveAI price comparison backend."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables with reasonable defaults."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    env: Literal["development", "staging", "production"] = Field(default="development", validation_alias="ENV")

    # Server
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")
    workers: int = Field(default=1, validation_alias="WORKERS")
    cors_origins: str = Field(default="http://localhost:3000", validation_alias="CORS_ORIGINS")

    # Supabase (identity + owner-scoped tables)
    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_key: str = Field(default="", validation_alias="SUPABASE_KEY")

    # Local development sessions: "token:user_id,token2:user_id2"
    static_session_tokens: str = Field(default="", validation_alias="STATIC_SESSION_TOKENS")

    # AI providers
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")
    manus_api_key: str = Field(default="", validation_alias="MANUS_API_KEY")
    manus_base_url: str = Field(default="https://api.manus.ai/v1", validation_alias="MANUS_BASE_URL")
    ai_timeout_seconds: float = Field(default=20.0, validation_alias="AI_TIMEOUT_SECONDS")
    ai_connect_timeout_seconds: float = Field(default=4.0)

    # Affiliate links
    amazon_affiliate_tag: str = Field(default="", validation_alias="AMAZON_AFFILIATE_TAG")
    affiliate_source: str = Field(default="saveai", validation_alias="AFFILIATE_SOURCE")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")
    rate_limit_backend: Literal["memory", "redis"] = Field(default="memory", validation_alias="RATE_LIMIT_BACKEND")
    rate_limit_requests: int = Field(default=30, ge=1, validation_alias="RATE_LIMIT_REQUESTS")
    rate_limit_window: int = Field(default=60, ge=1, validation_alias="RATE_LIMIT_WINDOW")
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Background jobs
    enable_background_jobs: bool = Field(default=False, validation_alias="ENABLE_BACKGROUND_JOBS")
    audit_retention_days: int = Field(default=90, ge=1, validation_alias="AUDIT_RETENTION_DAYS")
    cleanup_hour: int = Field(default=3, ge=0, le=23, validation_alias="CLEANUP_HOUR")

    # Logging / telemetry
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON")

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
