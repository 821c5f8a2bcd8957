"""
Core domain primitives shared by every layer.
"""

from reminder_engine.core.domain.exceptions import (
    AlertAlreadyResolved,
    AlertNotFound,
    AppointmentNotFound,
    ChannelNotFound,
    EntityNotFoundError,
    InvalidTransition,
    MissingVariable,
    NoChannelAvailable,
    RateLimited,
    ReminderEngineError,
    TransportError,
)

__all__ = [
    "AlertAlreadyResolved",
    "AlertNotFound",
    "AppointmentNotFound",
    "ChannelNotFound",
    "EntityNotFoundError",
    "InvalidTransition",
    "MissingVariable",
    "NoChannelAvailable",
    "RateLimited",
    "ReminderEngineError",
    "TransportError",
]
