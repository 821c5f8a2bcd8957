"""Reminder scheduling infrastructure."""

from .reminder_dispatcher import ReminderDispatcher, TriggerRunReport
from .reminder_scheduler import ReminderCadenceScheduler

__all__ = ["ReminderCadenceScheduler", "ReminderDispatcher", "TriggerRunReport"]
