# ============================================================================
# SCOPE: API
# Description: Pydantic schemas for the reminder engine HTTP surface.
# ============================================================================
"""
Reminder Engine API Schemas.

Request bodies for webhooks, secretary actions and operator tools. Responses are
the entities' ``to_dict()`` payloads.
"""

from __future__ import annotations

import string
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..domain.entities.reminder_job import TWO_HOURS_BEFORE
from ..domain.value_objects.appointment_status import AppointmentEvent

BULK_PLACEHOLDERS = frozenset({"patient_name", "clinic_name"})

# ============================================================================
# Webhook Schemas
# ============================================================================


class InboundWebhookRequest(BaseModel):
    """Simplified inbound message (phone + text) posted by the gateway bridge."""

    phone: str = Field(..., min_length=1, description="Patient phone, any format")
    message: str = Field(..., description="Message text")
    timestamp: int | None = Field(default=None, description="Unix timestamp of the message")
    channel_id: str | None = Field(default=None, description="Channel the message arrived on")
    message_id: str | None = Field(default=None, description="Provider message id")


# ============================================================================
# Reschedule Alert Schemas
# ============================================================================


class ResolveAlertRequest(BaseModel):
    resolved_by: str = Field(..., min_length=1, description="Secretary who handled the request")


# ============================================================================
# Reminder Schemas
# ============================================================================


class ManualTriggerRequest(BaseModel):
    """Run one cadence slot now."""

    days_before: int = Field(..., ge=0, le=2, description="2, 1 or 0")
    hour_bucket: int | str = Field(..., description=f"Slot hour (0-23) or '{TWO_HOURS_BEFORE}'")

    @field_validator("hour_bucket")
    @classmethod
    def validate_hour_bucket(cls, v):
        if isinstance(v, str):
            if v == TWO_HOURS_BEFORE:
                return v
            if v.isdigit():
                v = int(v)
            else:
                raise ValueError(f"hour_bucket must be an hour or '{TWO_HOURS_BEFORE}'")
        if not 0 <= v <= 23:
            raise ValueError("hour_bucket must be between 0 and 23")
        return v


class BulkSendRequest(BaseModel):
    patient_ids: list[str] = Field(..., min_length=1, description="Recipients")
    message: str = Field(..., min_length=1, description="Text; may use {patient_name} and {clinic_name}")
    channel_id: str | None = Field(default=None, description="Channel to use (healthiest if omitted)")

    @field_validator("message")
    @classmethod
    def validate_placeholders(cls, v):
        try:
            fields = {name for _, name, _, _ in string.Formatter().parse(v) if name is not None}
        except ValueError as e:
            raise ValueError(f"Invalid message template: {e}") from e
        unknown = fields - BULK_PLACEHOLDERS
        if unknown:
            raise ValueError(f"Unsupported placeholders: {sorted(unknown)}")
        return v


# ============================================================================
# Appointment Schemas
# ============================================================================


class AppointmentEventRequest(BaseModel):
    """Status event applied by the booking flow or the secretary."""

    event: AppointmentEvent
    new_scheduled_at: datetime | None = Field(default=None, description="Required for 'reschedule'")
    reason: str | None = None
