"""Unit tests for transient and conflict retry helpers."""

from unittest.mock import AsyncMock

import pytest

from src.marketplace.core.errors import (
    ConflictOrStale,
    NotFound,
    TransientStoreFailure,
)
from src.marketplace.core.services import retry_on_conflict, retry_transient
from src.marketplace.runtime.config.config_data import RetryConfig


class FakeSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestRetryTransient:
    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self):
        sleep = FakeSleep()
        operation = AsyncMock(
            side_effect=[TransientStoreFailure("down"), TransientStoreFailure("down"), "ok"]
        )

        result = await retry_transient(operation, RetryConfig(max_attempts=3), sleep)

        assert result == "ok"
        assert operation.await_count == 3
        assert len(sleep.delays) == 2
        assert all(delay >= 0 for delay in sleep.delays)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        sleep = FakeSleep()
        operation = AsyncMock(side_effect=TransientStoreFailure("down"))

        with pytest.raises(TransientStoreFailure):
            await retry_transient(operation, RetryConfig(max_attempts=2), sleep)

        assert operation.await_count == 2
        assert len(sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        sleep = FakeSleep()
        operation = AsyncMock(side_effect=NotFound("gone"))

        with pytest.raises(NotFound):
            await retry_transient(operation, RetryConfig(), sleep)

        assert operation.await_count == 1
        assert sleep.delays == []


class TestRetryOnConflict:
    @pytest.mark.asyncio
    async def test_refreshes_once_then_retries(self):
        operation = AsyncMock(side_effect=[ConflictOrStale("stale"), "ok"])
        refresh = AsyncMock()

        assert await retry_on_conflict(operation, refresh) == "ok"
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_conflict_propagates(self):
        operation = AsyncMock(side_effect=ConflictOrStale("stale"))
        refresh = AsyncMock()

        with pytest.raises(ConflictOrStale):
            await retry_on_conflict(operation, refresh)

        assert operation.await_count == 2
        refresh.assert_awaited_once()
