"""Where sign-in sessions are kept.

Sessions live in Redis when it is configured and answers PING, otherwise in
process memory. Both backends expire entries by TTL.
"""

from __future__ import annotations

import fnmatch
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from src.marketplace.core.errors import TransientStoreFailure

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")


class SessionStorage(ABC):
    @abstractmethod
    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""

    @abstractmethod
    async def get(self, key: str, model_class: type[T]) -> T | None:
        """The stored value parsed as ``model_class``, or None if missing or expired."""

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def list_keys(self, pattern: str) -> list[str]:
        """Live keys matching a glob such as ``session:*``."""

    @abstractmethod
    def is_available(self) -> bool: ...


@dataclass
class _Entry:
    payload: str
    expires_at: float


class InMemorySessionStorage(SessionStorage):
    """Single-process storage; entries are dropped lazily once expired."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is not None and time.time() > entry.expires_at:
            del self._entries[key]
            return None
        return entry

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        self._entries[key] = _Entry(value.model_dump_json(), time.time() + ttl_seconds)

    async def get(self, key: str, model_class: type[T]) -> T | None:
        entry = self._live(key)
        if entry is None:
            return None
        try:
            return model_class.model_validate_json(entry.payload)
        except ValidationError:
            logger.warning("Dropping unreadable session entry {}", key)
            del self._entries[key]
            return None

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def list_keys(self, pattern: str) -> list[str]:
        return [
            key
            for key in list(self._entries)
            if self._live(key) is not None and fnmatch.fnmatch(key, pattern)
        ]

    def is_available(self) -> bool:
        return True


class RedisSessionStorage(SessionStorage):
    """Shared storage on Redis; expiry is left to Redis key TTLs.

    Connection problems surface as ``TransientStoreFailure`` so callers can
    retry them like any other store outage.
    """

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._available = True

    async def _call(self, operation: str, command: Awaitable[R]) -> R:
        try:
            result = await command
        except RedisError as e:
            self._available = False
            raise TransientStoreFailure(
                "Session storage is temporarily unavailable",
                {"operation": operation, "error_type": type(e).__name__},
            ) from e
        self._available = True
        return result

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        await self._call("set", self._redis.setex(key, ttl_seconds, value.model_dump_json()))

    async def get(self, key: str, model_class: type[T]) -> T | None:
        data = await self._call("get", self._redis.get(key))
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return model_class.model_validate_json(data)

    async def delete(self, key: str) -> None:
        await self._call("delete", self._redis.delete(key))

    async def list_keys(self, pattern: str) -> list[str]:
        keys: list[str] = []
        cursor = 0
        while True:
            cursor, batch = await self._call(
                "scan", self._redis.scan(cursor, match=pattern, count=100)
            )
            keys.extend(k.decode("utf-8") if isinstance(k, bytes) else k for k in batch)
            if cursor == 0:
                return keys

    def is_available(self) -> bool:
        return self._available

    async def ping(self) -> bool:
        try:
            await self._call("ping", self._redis.ping())
        except TransientStoreFailure:
            return False
        return True


async def detect_session_storage(redis_client) -> SessionStorage:
    """Redis storage when a client is given and answers PING, else in-memory."""
    if redis_client is not None:
        storage = RedisSessionStorage(redis_client)
        if await storage.ping():
            logger.info("Session storage: Redis")
            return storage
        logger.warning("Redis did not answer PING; sessions will be kept in memory")
    return InMemorySessionStorage()
