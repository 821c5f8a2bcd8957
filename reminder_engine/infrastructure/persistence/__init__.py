"""
Persistence adapters for the reminder engine ports.
"""

from .memory import (
    InMemoryAppointmentStore,
    InMemoryChannelStore,
    InMemoryMessageLog,
    InMemoryPatientStore,
    InMemoryReminderLedger,
    InMemoryRescheduleAlertRepository,
    InMemoryTransitionAuditLog,
)
from .redis_ledger import RedisReminderLedger

__all__ = [
    "InMemoryAppointmentStore",
    "InMemoryChannelStore",
    "InMemoryMessageLog",
    "InMemoryPatientStore",
    "InMemoryReminderLedger",
    "InMemoryRescheduleAlertRepository",
    "InMemoryTransitionAuditLog",
    "RedisReminderLedger",
]
