"""
Reminder engine application services.
"""

from .channel_governor import (
    CONVERSATIONAL_PACING,
    MANUAL_BULK_PACING,
    REMINDER_PACING,
    AntiBlockConfig,
    ChannelGovernor,
    PacingProfile,
    SendReceipt,
)
from .intent_classifier import IntentClassifier, KeywordRule, normalize_text
from .state_machine import AppointmentStateMachine
from .template_resolver import MessageTemplateResolver, greeting_for

__all__ = [
    "CONVERSATIONAL_PACING",
    "MANUAL_BULK_PACING",
    "REMINDER_PACING",
    "AntiBlockConfig",
    "AppointmentStateMachine",
    "ChannelGovernor",
    "IntentClassifier",
    "KeywordRule",
    "MessageTemplateResolver",
    "PacingProfile",
    "SendReceipt",
    "greeting_for",
    "normalize_text",
]
