"""
Reminder engine value objects.
"""

from reminder_engine.domain.value_objects.appointment_status import AppointmentEvent, AppointmentStatus
from reminder_engine.domain.value_objects.channel_state import ChannelPurpose, ConnectionState
from reminder_engine.domain.value_objects.intent import ClassificationResult, MessageIntent
from reminder_engine.domain.value_objects.message import MessageDirection, MessageKind, MessageStatus

__all__ = [
    "AppointmentEvent",
    "AppointmentStatus",
    "ChannelPurpose",
    "ClassificationResult",
    "ConnectionState",
    "MessageDirection",
    "MessageIntent",
    "MessageKind",
    "MessageStatus",
]
