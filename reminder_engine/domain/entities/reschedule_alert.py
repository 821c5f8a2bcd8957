"""Reschedule Alert Entity.

Secretary-facing record created when a patient asks for a new time. Only a human
action resolves it, and a resolved alert is never modified again.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from reminder_engine.core.domain.exceptions import AlertAlreadyResolved


@dataclass
class RescheduleAlert:
    appointment_id: str
    patient_id: str
    detected_message: str
    whatsapp_link: str
    patient_name: str = ""
    patient_phone: str = ""
    appointment_time: datetime | None = None
    is_read: bool = False
    is_resolved: bool = False
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_open(self) -> bool:
        return not self.is_resolved

    def mark_read(self) -> None:
        if self.is_resolved:
            return
        self.is_read = True

    def resolve(self, resolved_by: str, at: datetime | None = None) -> None:
        """Cerrar la alerta.

        Raises:
            AlertAlreadyResolved: Si la alerta ya fue resuelta.
        """
        if self.is_resolved:
            raise AlertAlreadyResolved(self.id, self.resolved_by)
        self.is_read = True
        self.is_resolved = True
        self.resolved_by = resolved_by
        self.resolved_at = at or datetime.now(UTC)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "appointment_id": self.appointment_id,
            "patient_id": self.patient_id,
            "patient_name": self.patient_name,
            "patient_phone": self.patient_phone,
            "detected_message": self.detected_message,
            "whatsapp_link": self.whatsapp_link,
            "appointment_time": self.appointment_time.isoformat() if self.appointment_time else None,
            "is_read": self.is_read,
            "is_resolved": self.is_resolved,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at": self.created_at.isoformat(),
        }
