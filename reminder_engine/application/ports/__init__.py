"""
Application ports (interfaces) for the reminder engine.
"""

from .appointment_port import AppointmentStore, AppointmentWindow
from .channel_port import ChannelStore
from .ledger_port import ReminderLedger
from .log_port import MessageLogRepository, RescheduleAlertRepository, TransitionAuditLog
from .messaging_port import MessagingProvider, ProviderSendResult
from .patient_port import PatientStore

__all__ = [
    "AppointmentStore",
    "AppointmentWindow",
    "ChannelStore",
    "MessageLogRepository",
    "MessagingProvider",
    "PatientStore",
    "ProviderSendResult",
    "ReminderLedger",
    "RescheduleAlertRepository",
    "TransitionAuditLog",
]
