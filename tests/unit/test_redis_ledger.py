"""
Unit tests for RedisReminderLedger.

Tests cover:
- Atomic claim with SET NX EX
- Release and lookup
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from reminder_engine.infrastructure.persistence.redis_ledger import (
    DEFAULT_TTL_SECONDS,
    RedisReminderLedger,
)

KEY = "apt-1:2026-03-12:2:10"


@pytest.fixture
def mock_redis():
    """Create mock Redis client."""
    redis = MagicMock()
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.exists = AsyncMock(return_value=0)
    return redis


class TestClaim:
    """Tests for claim()."""

    @pytest.mark.asyncio
    async def test_first_claim_wins(self, mock_redis):
        ledger = RedisReminderLedger(mock_redis)

        assert await ledger.claim(KEY) is True

        mock_redis.set.assert_awaited_once_with(
            f"reminder:sent:{KEY}", "1", nx=True, ex=DEFAULT_TTL_SECONDS
        )

    @pytest.mark.asyncio
    async def test_second_claim_loses(self, mock_redis):
        mock_redis.set.return_value = None
        ledger = RedisReminderLedger(mock_redis)

        assert await ledger.claim(KEY) is False

    @pytest.mark.asyncio
    async def test_custom_ttl(self, mock_redis):
        ledger = RedisReminderLedger(mock_redis, ttl_seconds=60)

        await ledger.claim(KEY)

        assert mock_redis.set.await_args.kwargs["ex"] == 60


class TestReleaseAndLookup:
    @pytest.mark.asyncio
    async def test_release_deletes_key(self, mock_redis):
        ledger = RedisReminderLedger(mock_redis)

        await ledger.release(KEY)

        mock_redis.delete.assert_awaited_once_with(f"reminder:sent:{KEY}")

    @pytest.mark.asyncio
    async def test_is_claimed(self, mock_redis):
        ledger = RedisReminderLedger(mock_redis)
        assert await ledger.is_claimed(KEY) is False

        mock_redis.exists.return_value = 1
        assert await ledger.is_claimed(KEY) is True
