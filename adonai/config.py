from __future__ import annotations

from typing import Annotated

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    supabase_url: str | None = Field(None, alias="SUPABASE_URL")
    supabase_anon_key: str | None = Field(None, alias="SUPABASE_ANON_KEY")
    supabase_service_key: str | None = Field(None, alias="SUPABASE_SERVICE_KEY")
    auth_timeout: float = Field(10.0, alias="AUTH_TIMEOUT")

    database_url: str | None = Field(
        None,
        alias="DATABASE_URL",
        description="Postgres connection string of the Supabase project",
    )
    db_create_all: bool = Field(False, alias="DB_CREATE_ALL")

    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")
    openai_model: str = Field("gpt-4o", alias="OPENAI_MODEL")
    openai_max_tokens: int = Field(1000, alias="OPENAI_MAX_TOKENS")
    openai_temperature: float = Field(0.7, alias="OPENAI_TEMPERATURE")
    openai_timeout: float = Field(60.0, alias="OPENAI_TIMEOUT")

    daily_limit_free: int = Field(10, alias="DAILY_LIMIT_FREE")
    unlimited_tiers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["premium", "admin"],
        alias="UNLIMITED_TIERS",
    )
    quota_policy: str = Field("fail_open", alias="QUOTA_POLICY")
    max_history_messages: int = Field(20, alias="MAX_HISTORY_MESSAGES")

    port: int = Field(3000, alias="PORT")
    static_dir: str = Field("frontend", alias="STATIC_DIR")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("unlimited_tiers", mode="before")
    @classmethod
    def _split_tiers(cls, value):
        if isinstance(value, str):
            return [item.strip().lower() for item in value.split(",") if item.strip()]
        return value

    @property
    def supabase_configured(self) -> bool:
        return bool(
            self.supabase_url and self.supabase_anon_key and self.supabase_service_key
        )

    @property
    def storage_configured(self) -> bool:
        return self.supabase_configured and bool(self.database_url)
