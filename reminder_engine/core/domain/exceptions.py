"""
Domain Exceptions for the reminder engine

These exceptions represent business rule violations and transient delivery errors.
They are caught and translated to HTTP responses in the API layer, and isolated
per appointment inside batch operations.
"""

from typing import Any


class ReminderEngineError(Exception):
    """
    Base exception for all reminder engine errors.

    Provides a standardized way to communicate business rule violations.
    """

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "INVALID_TRANSITION")
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class EntityNotFoundError(ReminderEngineError):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        msg = message or f"{entity_type} with ID {entity_id} not found"
        super().__init__(
            msg,
            "ENTITY_NOT_FOUND",
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class AppointmentNotFound(EntityNotFoundError):
    def __init__(self, appointment_id: Any):
        super().__init__("Appointment", appointment_id)


class AlertNotFound(EntityNotFoundError):
    def __init__(self, alert_id: Any):
        super().__init__("RescheduleAlert", alert_id)


class ChannelNotFound(EntityNotFoundError):
    def __init__(self, channel_id: Any):
        super().__init__("Channel", channel_id)


class InvalidTransition(ReminderEngineError):
    """Raised when the current appointment state does not permit an event."""

    def __init__(self, appointment_id: Any, current_state: str, event: str):
        self.appointment_id = appointment_id
        self.current_state = current_state
        self.event = event
        super().__init__(
            f"Cannot apply '{event}' to appointment {appointment_id} in state '{current_state}'",
            "INVALID_TRANSITION",
            {"appointment_id": str(appointment_id), "current_state": current_state, "event": event},
        )


class AlertAlreadyResolved(ReminderEngineError):
    """Raised when a resolved reschedule alert is resolved again."""

    def __init__(self, alert_id: Any, resolved_by: str | None):
        self.alert_id = alert_id
        super().__init__(
            f"Reschedule alert {alert_id} was already resolved by {resolved_by or 'unknown'}",
            "ALERT_ALREADY_RESOLVED",
            {"alert_id": str(alert_id), "resolved_by": resolved_by},
        )


class MissingVariable(ReminderEngineError):
    """Raised when a template placeholder has no supplied value."""

    def __init__(self, variable: str, template_name: str):
        self.variable = variable
        self.template_name = template_name
        super().__init__(
            f"Template '{template_name}' requires variable '{variable}'",
            "MISSING_VARIABLE",
            {"variable": variable, "template": template_name},
        )


class NoChannelAvailable(ReminderEngineError):
    """Raised when no candidate channel is connected."""

    def __init__(self, purpose: str | None = None):
        self.purpose = purpose
        super().__init__(
            f"No connected channel available{f' for {purpose}' if purpose else ''}",
            "NO_CHANNEL_AVAILABLE",
            {"purpose": purpose},
        )


class RateLimited(ReminderEngineError):
    """Raised when the channel governor refuses a send."""

    def __init__(self, message: str, channel_id: str | None = None, retry_after: int | None = None):
        self.channel_id = channel_id
        self.retry_after = retry_after
        super().__init__(
            message,
            "RATE_LIMITED",
            {"channel_id": channel_id, "retry_after": retry_after},
        )


class TransportError(ReminderEngineError):
    """Raised when the messaging provider fails or times out."""

    def __init__(self, message: str, channel_id: str | None = None, status_code: int | None = None):
        self.channel_id = channel_id
        self.status_code = status_code
        super().__init__(
            message,
            "TRANSPORT_ERROR",
            {"channel_id": channel_id, "status_code": status_code},
        )


class CutoffReached(RateLimited):
    """Raised when a send's deadline passes while it waits for its pacing pause."""

    def __init__(self, channel_id: str | None = None):
        super().__init__(
            f"Send deadline passed before channel {channel_id} could send",
            channel_id=channel_id,
        )
        self.code = "CUTOFF_REACHED"
