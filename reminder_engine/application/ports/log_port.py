# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Audit repositories (message log, reschedule alerts, transitions).
# ============================================================================
"""Audit Repository Ports.

Implementations: in-memory (default, tests) and SQLAlchemy async repositories.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ...domain.entities.appointment import StatusTransition
    from ...domain.entities.message_log import MessageLogEntry
    from ...domain.entities.reschedule_alert import RescheduleAlert
    from ...domain.value_objects.message import MessageStatus


@runtime_checkable
class MessageLogRepository(Protocol):
    async def append(self, entry: "MessageLogEntry") -> "MessageLogEntry":
        ...

    async def update_status(
        self,
        entry_id: str,
        status: "MessageStatus",
        *,
        external_message_id: str | None = None,
        error: str | None = None,
    ) -> "MessageLogEntry | None":
        """Move an entry to a new delivery status."""
        ...

    async def find_by_external_id(self, external_message_id: str) -> "MessageLogEntry | None":
        ...

    async def list_recent(self, limit: int = 50, appointment_id: str | None = None) -> list["MessageLogEntry"]:
        """Most recent entries first."""
        ...

    async def count_by_status(self, since: datetime | None = None) -> dict[str, int]:
        """Outbound entry counts keyed by status value."""
        ...


@runtime_checkable
class RescheduleAlertRepository(Protocol):
    async def add(self, alert: "RescheduleAlert") -> "RescheduleAlert":
        ...

    async def get(self, alert_id: str) -> "RescheduleAlert | None":
        ...

    async def save(self, alert: "RescheduleAlert") -> "RescheduleAlert":
        ...

    async def find_open_for_appointment(self, appointment_id: str) -> "RescheduleAlert | None":
        ...

    async def list_alerts(
        self,
        *,
        is_read: bool | None = None,
        is_resolved: bool | None = None,
        limit: int = 100,
    ) -> list["RescheduleAlert"]:
        """Newest first, optionally filtered by read/resolved flags."""
        ...


@runtime_checkable
class TransitionAuditLog(Protocol):
    async def append(self, transition: "StatusTransition") -> None:
        ...

    async def list_for(self, appointment_id: str) -> list["StatusTransition"]:
        ...
