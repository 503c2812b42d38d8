"""Typed view of ``config.yaml``.

Every section has defaults, so an empty or missing file still yields a
working development configuration.
"""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field, computed_field
from sqlalchemy.engine import make_url

Environment = Literal["development", "production", "test"]


class CORSConfig(BaseModel):
    origins: list[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])
    allow_credentials: bool = True
    allow_methods: list[str] = Field(default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"])
    allow_headers: list[str] = Field(default=["*"])


class AppConfig(BaseModel):
    environment: Environment = "development"
    host: str = "localhost"
    port: int = 8000
    cors: CORSConfig = Field(default_factory=CORSConfig)


class DatabaseConfig(BaseModel):
    """Relational store settings. Pool sizes are ignored for SQLite."""

    url: str = "sqlite:///./marketplace.db"
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    pool_recycle: int = Field(default=1800, description="Seconds before a connection is recycled")
    echo: bool = False
    password_env_var: str | None = Field(
        default=None,
        description="Environment variable holding the password when the URL has none",
    )

    @computed_field
    @property
    def connection_string(self) -> str:
        url = make_url(self.url)
        password = os.getenv(self.password_env_var) if self.password_env_var else None
        if url.password or not password:
            return self.url
        return url.set(password=password).render_as_string(hide_password=False)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class RedisConfig(BaseModel):
    """Optional Redis backing shared sessions and the cross-instance change feed."""

    enabled: bool = False
    url: str = ""
    password: str | None = None
    decode_responses: bool = True
    max_connections: int = 50
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 2.0

    @computed_field
    @property
    def connection_string(self) -> str:
        if not self.password or "@" in self.url or "://" not in self.url:
            return self.url
        scheme, rest = self.url.split("://", 1)
        return f"{scheme}://:{self.password}@{rest}"

    @property
    def sanitized_connection_string(self) -> str:
        if not self.password:
            return self.connection_string
        return self.connection_string.replace(self.password, "***")


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["json", "plain"] = Field(
        default="plain", description="Format of the file sink; the console is always plain"
    )
    file: str | None = None
    max_size_mb: int = Field(default=10, description="Rotate the file sink at this size")
    backup_count: int = Field(default=5, description="Rotated files to keep")


class ChangeFeedConfig(BaseModel):
    backend: Literal["memory", "redis"] = Field(
        default="memory", description="memory: single process; redis: pub/sub across instances"
    )
    channel_prefix: str = "marketplace:changes"
    stream_queue_size: int = Field(
        default=256, description="Notices buffered per WebSocket before new ones are dropped"
    )


class EntitlementConfig(BaseModel):
    protected_account_id: str | None = Field(
        default=None,
        description="The super-account that no one may demote or delete",
    )
    profile_cache_ttl_seconds: int = 60
    profile_cache_size: int = 1024


class SessionConfig(BaseModel):
    ttl_seconds: int = 24 * 3600
    cookie_name: str = "session_id"


class RetryConfig(BaseModel):
    """Backoff for ``TransientStoreFailure``; conflicts are never retried here."""

    max_attempts: int = Field(default=3, description="Attempts including the first one")
    backoff_base: float = 0.1
    backoff_cap: float = 2.0


class ConfigData(BaseModel):
    """Root of ``config.yaml``: everything under the top-level ``config:`` key."""

    app: AppConfig = Field(default_factory=AppConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    change_feed: ChangeFeedConfig = Field(default_factory=ChangeFeedConfig)
    entitlement: EntitlementConfig = Field(default_factory=EntitlementConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
