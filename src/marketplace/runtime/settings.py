"""Values read straight from the process environment or a local ``.env``.

Structured settings belong in ``config.yaml``. This covers what operators set
per deployment, notably the protected super-account written by
``marketplace seed-admin --protected``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.marketplace.runtime.config.config_data import ConfigData


class EnvironmentVariables(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = Field(
        default="development", validation_alias="APP_ENVIRONMENT"
    )
    protected_account_id: str | None = Field(
        default=None, validation_alias="PROTECTED_ACCOUNT_ID"
    )


def get_environment() -> EnvironmentVariables:
    return EnvironmentVariables()


def resolve_protected_account_id(config: ConfigData) -> str | None:
    """Config wins; ``PROTECTED_ACCOUNT_ID`` from the environment or ``.env`` is the fallback."""
    return config.entitlement.protected_account_id or get_environment().protected_account_id
