# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Reminder dedup ledger port (DIP compliant).
# ============================================================================
"""Reminder Ledger Port.

Atomic claims keyed by ReminderJob.dedup_key. A claim that survives a process
restart keeps a re-run trigger from sending twice.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ReminderLedger(Protocol):
    async def claim(self, key: str) -> bool:
        """Claim the key. Returns False if it was already claimed."""
        ...

    async def release(self, key: str) -> None:
        """Drop a claim whose send never happened."""
        ...

    async def is_claimed(self, key: str) -> bool:
        ...
