"""Change propagation: publish/subscribe fan-out of row-change notices.

Delivery is at-least-once and best-effort. Events carry no row contents, so
subscribers re-fetch authoritative state when notified and must tolerate both
duplicates and gaps.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger
from pydantic import ValidationError
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from src.marketplace.core.errors import TransientStoreFailure
from src.marketplace.core.models.change_event import ChangeEvent, ChangeTable

ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]
ChangePredicate = Callable[[ChangeEvent], bool]


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque token returned by ``subscribe`` and accepted by ``unsubscribe``."""

    id: str
    table: ChangeTable


@dataclass
class _Subscription:
    handle: SubscriptionHandle
    on_change: ChangeHandler
    predicate: ChangePredicate | None = None

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.handle.table:
            return False
        return self.predicate is None or self.predicate(event)


class ChangeFeed(ABC):
    """Fan-out of change events to local subscribers."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, _Subscription] = {}
        self._delivered = 0

    def subscribe(
        self,
        table: ChangeTable | str,
        predicate: ChangePredicate | None,
        on_change: ChangeHandler,
    ) -> SubscriptionHandle:
        handle = SubscriptionHandle(id=str(uuid.uuid4()), table=ChangeTable(table))
        self._subscriptions[handle.id] = _Subscription(
            handle=handle, on_change=on_change, predicate=predicate
        )
        logger.debug("Change feed subscription {} on {}", handle.id, handle.table)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        removed = self._subscriptions.pop(handle.id, None) is not None
        if removed:
            logger.debug("Change feed subscription {} removed", handle.id)
        return removed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def delivered_count(self) -> int:
        """Handler invocations that completed since the feed was created."""
        return self._delivered

    async def _dispatch(self, event: ChangeEvent) -> int:
        """Deliver ``event`` to every matching subscriber; returns deliveries."""
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            try:
                if not subscription.matches(event):
                    continue
                await subscription.on_change(event)
            except Exception as e:
                # One failing subscriber must not starve the others
                logger.opt(exception=e).error(
                    "Change handler failed",
                    subscription=subscription.handle.id,
                    table=str(event.table),
                    record_id=event.record_id,
                )
                continue
            delivered += 1
        self._delivered += delivered
        return delivered

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None:
        """Announce a committed change."""

    async def start(self) -> None:
        """Begin receiving remote events. No-op for local backends."""

    async def close(self) -> None:
        self._subscriptions.clear()

    async def health_check(self) -> bool:
        return True


class InMemoryChangeFeed(ChangeFeed):
    """Single-process feed: ``publish`` delivers to subscribers directly."""

    def __init__(self) -> None:
        super().__init__()
        self.published: list[ChangeEvent] = []

    async def publish(self, event: ChangeEvent) -> None:
        self.published.append(event)
        await self._dispatch(event)


class RedisChangeFeed(ChangeFeed):
    """Multi-instance feed over Redis pub/sub.

    Events are published as JSON to ``<prefix>:<table>``. A listener task
    pattern-subscribes to ``<prefix>:*`` and dispatches what it receives to
    the local subscribers, including events this instance published itself.
    When the connection drops the listener re-subscribes with exponential
    backoff; notices sent while it was away are lost, as the feed allows.
    """

    def __init__(
        self,
        redis_client,
        channel_prefix: str,
        reconnect_base: float = 0.5,
        reconnect_cap: float = 30.0,
    ) -> None:
        super().__init__()
        self._redis = redis_client
        self._prefix = channel_prefix
        self._backoff = ExponentialBackoff(cap=reconnect_cap, base=reconnect_base)
        self._pubsub = None
        self._listener: asyncio.Task | None = None
        self._subscribed = False
        self.reconnects = 0

    def channel_for(self, table: ChangeTable | str) -> str:
        return f"{self._prefix}:{ChangeTable(table)}"

    async def publish(self, event: ChangeEvent) -> None:
        try:
            await self._redis.publish(
                self.channel_for(event.table), event.model_dump_json()
            )
        except RedisError as e:
            raise TransientStoreFailure(
                "Change notification could not be published",
                {"error_type": type(e).__name__},
            ) from e

    async def start(self) -> None:
        if self._listener is not None:
            return
        self._listener = asyncio.create_task(self._listen(), name="change-feed-listener")
        logger.info("Redis change feed listening on {}:*", self._prefix)

    async def _subscribe(self) -> None:
        self._pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await self._pubsub.psubscribe(f"{self._prefix}:*")
        self._subscribed = True

    async def _drop_pubsub(self) -> None:
        self._subscribed = False
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.aclose()
        except RedisError as e:
            logger.debug("Discarding broken pub/sub connection: {}", type(e).__name__)

    async def _listen(self) -> None:
        failures = 0
        while True:
            try:
                await self._subscribe()
                if failures:
                    self.reconnects += 1
                    logger.info("Change feed re-subscribed after {} failed attempts", failures)
                failures = 0
                async for message in self._pubsub.listen():
                    await self._receive(message)
                raise RedisConnectionError("pub/sub stream ended")
            except RedisError as e:
                failures += 1
                delay = self._backoff.compute(failures)
                logger.warning(
                    "Change feed connection lost, retrying in {:.1f}s",
                    delay,
                    error_type=type(e).__name__,
                    attempt=failures,
                )
                await self._drop_pubsub()
                await asyncio.sleep(delay)

    async def _receive(self, message: dict) -> None:
        if message.get("type") != "pmessage":
            return
        data = message["data"]
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            event = ChangeEvent.model_validate_json(data)
        except ValidationError:
            logger.warning("Ignoring malformed change event on {}", message.get("channel"))
            return
        await self._dispatch(event)

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.opt(exception=e).error("Change feed listener had failed")
            self._listener = None
        await self._drop_pubsub()
        await super().close()

    async def health_check(self) -> bool:
        if self._listener is None or self._listener.done() or not self._subscribed:
            return False
        try:
            await self._redis.ping()
        except RedisError:
            return False
        return True


def create_change_feed(backend: str, redis_client=None, channel_prefix: str = "") -> ChangeFeed:
    """Build the configured feed; falls back to in-memory without a Redis client."""
    if backend == "redis":
        if redis_client is not None:
            return RedisChangeFeed(redis_client, channel_prefix)
        logger.warning("Redis change feed requested but Redis is unavailable; using in-memory feed")
    return InMemoryChangeFeed()
