"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./siteledger.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    database_max_workers: int = Field(
        default=4,
        description="Maximum number of worker threads running database calls concurrently",
        gt=0,
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Origins allowed to call the API from a browser",
    )
    app_timezone: str = Field(
        default="Asia/Kolkata",
        description="Timezone used to stamp and display notification timestamps",
    )
    currency_symbol: str = Field(
        default="₹",
        description="Symbol prefixed to amounts in notification messages",
    )
    notification_window: int = Field(
        default=50,
        description="Number of recent notifications held by a live notification store",
        gt=0,
    )
    notification_name_fallback: Literal["sentinel", "truncated_id"] = Field(
        default="sentinel",
        description="Display name used when every lookup source for a name fails",
    )
    notification_store_access: Literal["elevated", "normal"] = Field(
        default="elevated",
        description="Privilege level used by the dispatcher when writing notifications",
    )
    notification_privileged_roles: list[str] = Field(
        default_factory=lambda: ["admin"],
        description="Roles allowed to receive in-app notifications",
    )
    notification_rollback_on_failure: bool = Field(
        default=True,
        description="Revert optimistic read markers when the store rejects the update",
    )
    notification_resubscribe_delay: float = Field(
        default=1.0,
        description="Seconds to wait between attempts to reopen a dropped subscription",
        ge=0,
    )
    notification_max_resubscribe_attempts: int = Field(
        default=5,
        description="Attempts made to reopen a dropped subscription before giving up",
        gt=0,
    )

    @field_validator("notification_privileged_roles")
    @classmethod
    def _normalize_roles(cls, value: list[str]) -> list[str]:
        roles = [role.strip().lower() for role in value if role and role.strip()]
        if not roles:
            raise ValueError("NOTIFICATION_PRIVILEGED_ROLES must name at least one role")
        return roles


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
