"""Appointment Entity.

Represents a clinic appointment as seen by the reminder subsystem. Creation and
editing belong to the booking flow; here the entity only changes status through
the state machine and accumulates reminder bookkeeping.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo

from ..value_objects.appointment_status import AppointmentEvent, AppointmentStatus


@dataclass(frozen=True)
class StatusTransition:
    """Registro auditable de un cambio de estado."""

    appointment_id: str
    from_status: AppointmentStatus
    to_status: AppointmentStatus
    event: AppointmentEvent
    occurred_at: datetime
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "appointment_id": self.appointment_id,
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "event": self.event.value,
            "occurred_at": self.occurred_at.isoformat(),
            "reason": self.reason,
        }


@dataclass
class Appointment:
    """Turno odontológico."""

    id: str
    patient_id: str
    scheduled_at: datetime
    duration_minutes: int = 30
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    channel_id: str | None = None

    # Reminder bookkeeping
    reminder_attempts: int = 0
    last_reminder_at: datetime | None = None

    # Timestamps
    confirmed_at: datetime | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def apply(self, transition: StatusTransition, new_scheduled_at: datetime | None = None) -> None:
        """Aplicar una transición ya validada por la máquina de estados."""
        self.status = transition.to_status
        if transition.event == AppointmentEvent.CONFIRM:
            self.confirmed_at = transition.occurred_at
        if transition.event == AppointmentEvent.RESCHEDULE:
            if new_scheduled_at is not None:
                self.scheduled_at = new_scheduled_at
            self.reminder_attempts = 0
            self.last_reminder_at = None
            self.confirmed_at = None
        self.updated_at = transition.occurred_at

    def record_reminder(self, at: datetime) -> None:
        self.reminder_attempts += 1
        self.last_reminder_at = at
        self.updated_at = at

    # Query methods
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    def is_confirmed(self) -> bool:
        return self.status == AppointmentStatus.CONFIRMED

    def local_start(self, tz: tzinfo) -> datetime:
        """Inicio del turno en la zona horaria de la clínica."""
        return self.scheduled_at.astimezone(tz)

    def formatted_date(self, tz: tzinfo) -> str:
        """Fecha formateada para mensajes (dd/mm/yyyy)."""
        return self.local_start(tz).strftime("%d/%m/%Y")

    def formatted_time(self, tz: tzinfo) -> str:
        """Hora formateada para mensajes (HH:MM)."""
        return self.local_start(tz).strftime("%H:%M")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "scheduled_at": self.scheduled_at.isoformat(),
            "duration_minutes": self.duration_minutes,
            "status": self.status.value,
            "status_label": self.status.display_name,
            "channel_id": self.channel_id,
            "reminder_attempts": self.reminder_attempts,
            "last_reminder_at": self.last_reminder_at.isoformat() if self.last_reminder_at else None,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
        }
