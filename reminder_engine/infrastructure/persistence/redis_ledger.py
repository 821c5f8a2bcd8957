"""
Redis Reminder Ledger

Dedup ledger for reminder sends, shared by every worker and persistent across
restarts.

Key Design:
- Uses Redis SET with NX (only set if not exists) + EX (expire in seconds)
- Key: reminder:sent:{appointment_id}:{date}:{days_before}:{hour_bucket}
- TTL covers the whole cadence of an appointment (default 3 days)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

LEDGER_KEY_PREFIX = "reminder:sent:"

DEFAULT_TTL_SECONDS = 3 * 24 * 60 * 60  # 3 days


class RedisReminderLedger:
    """ReminderLedger backed by Redis."""

    def __init__(self, redis_client: Redis, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        """
        Initialize ledger.

        Args:
            redis_client: Async Redis client instance
            ttl_seconds: Lifetime of a claim
        """
        self._redis = redis_client
        self._ttl = ttl_seconds

    def _get_key(self, key: str) -> str:
        return f"{LEDGER_KEY_PREFIX}{key}"

    async def claim(self, key: str) -> bool:
        """
        Atomically claim a reminder slot.

        Returns:
            True if this caller owns the send, False if it was already claimed
        """
        acquired = await self._redis.set(self._get_key(key), "1", nx=True, ex=self._ttl)
        if not acquired:
            logger.info(f"[LEDGER] Reminder {key} already claimed")
        return bool(acquired)

    async def release(self, key: str) -> None:
        await self._redis.delete(self._get_key(key))
        logger.debug(f"[LEDGER] Released reminder {key}")

    async def is_claimed(self, key: str) -> bool:
        return bool(await self._redis.exists(self._get_key(key)))
