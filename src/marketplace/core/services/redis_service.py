"""Shared Redis client for session storage and the cross-instance change feed."""

from __future__ import annotations

from typing import Any

from loguru import logger
from redis.backoff import ExponentialBackoff
from redis.exceptions import RedisError
from redis.retry import Retry

from src.marketplace.runtime.config.config_data import RedisConfig
from src.marketplace.runtime.context import get_config


class RedisService:
    """Owns the optional Redis connection pool.

    Redis is never required: when it is disabled or has no URL the service
    stays idle, ``client`` is None and callers fall back to in-process
    backends.
    """

    def __init__(self, redis_config: RedisConfig | None = None) -> None:
        config = get_config()
        self._config = redis_config or config.redis
        self._client = None

        if not self._config.enabled:
            logger.info("Redis disabled; sessions and change feed stay in-process")
            return
        if not self._config.url:
            logger.warning("Redis enabled without a URL; ignoring it")
            return

        try:
            self._client = self._connect()
        except (RedisError, ValueError) as e:
            logger.error(
                "Redis client could not be created",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
            )
            if config.app.environment == "production":
                raise
            return

        logger.info("Redis client ready at {}", self._config.sanitized_connection_string)

    def _connect(self):
        import redis.asyncio as redis_async

        return redis_async.from_url(
            self._config.connection_string,
            decode_responses=self._config.decode_responses,
            max_connections=self._config.max_connections,
            socket_timeout=self._config.socket_timeout,
            socket_connect_timeout=self._config.socket_connect_timeout,
            socket_keepalive=True,
            health_check_interval=30,
            retry=Retry(ExponentialBackoff(cap=10, base=1), retries=6),
            client_name="marketplace",
        )

    @property
    def client(self):
        """The async client, or None when Redis is not in use."""
        return self._client

    @property
    def is_enabled(self) -> bool:
        return self._client is not None

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.ping()
        except RedisError as e:
            logger.warning("Redis ping failed", extra={"error_type": type(e).__name__})
            return False
        return True

    async def server_info(self) -> dict[str, Any] | None:
        """Version and load figures for the readiness check."""
        if self._client is None:
            return None
        try:
            info = await self._client.info()
        except RedisError as e:
            logger.warning("Redis INFO failed", extra={"error_type": type(e).__name__})
            return None
        return {
            "version": info.get("redis_version"),
            "connected_clients": info.get("connected_clients"),
            "pubsub_patterns": info.get("pubsub_patterns"),
        }

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.aclose()
        except RedisError as e:
            logger.error(
                "Redis connection did not close cleanly",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
            )
        else:
            logger.info("Redis connection closed")
