"""
Reminder engine entities.
"""

from reminder_engine.domain.entities.appointment import Appointment, StatusTransition
from reminder_engine.domain.entities.channel import Channel, SendResult
from reminder_engine.domain.entities.message_log import MessageLogEntry
from reminder_engine.domain.entities.patient import Patient
from reminder_engine.domain.entities.reminder_job import TWO_HOURS_BEFORE, HourBucket, ReminderJob
from reminder_engine.domain.entities.reschedule_alert import RescheduleAlert

__all__ = [
    "Appointment",
    "Channel",
    "HourBucket",
    "MessageLogEntry",
    "Patient",
    "ReminderJob",
    "RescheduleAlert",
    "SendResult",
    "StatusTransition",
    "TWO_HOURS_BEFORE",
]
