"""Retry helpers for store operations.

Only ``TransientStoreFailure`` is retried with backoff. ``ConflictOrStale``
gets exactly one more attempt after the caller's view has been refreshed;
anything else propagates immediately.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from redis.backoff import ExponentialBackoff

from src.marketplace.core.errors import ConflictOrStale, TransientStoreFailure
from src.marketplace.runtime.config.config_data import RetryConfig
from src.marketplace.runtime.context import get_config

T = TypeVar("T")


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    policy: RetryConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation()``, retrying transient store failures with backoff."""
    policy = policy or get_config().retry
    backoff = ExponentialBackoff(cap=policy.backoff_cap, base=policy.backoff_base)
    attempt = 0
    while True:
        try:
            return await operation()
        except TransientStoreFailure:
            attempt += 1
            if attempt >= policy.max_attempts:
                logger.warning("Giving up after {} transient failures", attempt)
                raise
            delay = backoff.compute(attempt)
            logger.info("Transient store failure, retrying in {:.2f}s", delay, attempt=attempt)
            await sleep(delay)


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    refresh: Callable[[], Awaitable[object]],
) -> T:
    """Await ``operation()``; on a conflict refresh once and try one more time."""
    try:
        return await operation()
    except ConflictOrStale:
        logger.info("Conflict detected, refreshing before a single retry")
        await refresh()
        return await operation()
