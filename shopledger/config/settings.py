"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file).

Besides connection details it carries the confirm-protocol timing: how long a staged action stays
resolvable and how often expired actions are swept.
"""

from __future__ import annotations

import logging

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shopledger.actions.composer import SUPPORTED_LOCALES


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    telegram_bot_token: str = Field(alias="TELEGRAM_BOT_TOKEN")
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    db_timezone: str = Field(default="UTC", alias="DB_TIMEZONE")

    llm_enabled: bool = Field(default=False, alias="LLM_ENABLED")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")

    pending_action_ttl_s: float = Field(default=300.0, gt=0, alias="PENDING_ACTION_TTL_S")
    pending_sweep_interval_s: float = Field(default=120.0, gt=0, alias="PENDING_SWEEP_INTERVAL_S")
    default_locale: str = Field(default="en", alias="DEFAULT_LOCALE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("db_timezone")
    @classmethod
    def validate_db_timezone_is_utc(cls, value: str) -> str:
        """Validate that the DB timezone is locked to UTC.

        Sale and expense timestamps are stored and compared as UTC. Any other timezone is rejected
        at startup.
        """

        if value.upper() != "UTC":
            raise ValueError("DB_TIMEZONE must be UTC")
        return "UTC"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL: {value}")
        return level

    @field_validator("default_locale")
    @classmethod
    def validate_default_locale(cls, value: str) -> str:
        locale = value.strip().lower()
        if locale not in SUPPORTED_LOCALES:
            raise ValueError(f"DEFAULT_LOCALE must be one of {', '.join(SUPPORTED_LOCALES)}")
        return locale

    @model_validator(mode="after")
    def validate_llm_config(self) -> Settings:
        """Validate the optional LLM classifier configuration.

        If LLM classification is enabled, an API key must be provided.
        """

        if self.llm_enabled and not self.llm_api_key:
            raise ValueError("LLM_API_KEY is required when LLM_ENABLED=true")
        return self

    @model_validator(mode="after")
    def validate_sweep_interval(self) -> Settings:
        """The sweeper must run more often than actions expire."""

        if self.pending_sweep_interval_s >= self.pending_action_ttl_s:
            raise ValueError("PENDING_SWEEP_INTERVAL_S must be shorter than PENDING_ACTION_TTL_S")
        return self


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        # Raising here is fine: caller can decide how to handle startup errors.
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
