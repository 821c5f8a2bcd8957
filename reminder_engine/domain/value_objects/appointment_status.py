"""Appointment Status Value Object.

Defines the possible states of a clinic appointment, the events that move it
and their valid transitions.
"""

from enum import Enum


class AppointmentStatus(str, Enum):
    """Estados del turno con máquina de estados."""

    SCHEDULED = "scheduled"  # Agendado, sin recordatorios enviados
    CONFIRMED = "confirmed"  # Confirmado por el paciente
    NOT_CONFIRMED = "not_confirmed"  # Recordado y todavía sin respuesta
    RESCHEDULING_PENDING = "rescheduling_pending"  # Esperando a la secretaria
    COMPLETED = "completed"  # Atendido
    CANCELLED = "cancelled"  # Cancelado
    NO_SHOW = "no_show"  # No se presentó

    @property
    def display_name(self) -> str:
        """Nombre para mostrar en español."""
        names = {
            "scheduled": "Agendado",
            "confirmed": "Confirmado",
            "not_confirmed": "No confirmado",
            "rescheduling_pending": "Reagendamiento pendiente",
            "completed": "Completado",
            "cancelled": "Cancelado",
            "no_show": "No se presentó",
        }
        return names.get(self.value, self.value)

    def can_transition_to(self, new_status: "AppointmentStatus") -> bool:
        """Validar si la transición de estado es válida.

        State machine:
        - scheduled -> confirmed, not_confirmed, rescheduling_pending, cancelled
        - not_confirmed -> confirmed, rescheduling_pending, cancelled
        - rescheduling_pending -> scheduled (new time), cancelled
        - confirmed -> completed, no_show, rescheduling_pending
        - completed, cancelled, no_show -> (final states)
        """
        transitions: dict[str, list[str]] = {
            "scheduled": ["confirmed", "not_confirmed", "rescheduling_pending", "cancelled"],
            "not_confirmed": ["confirmed", "rescheduling_pending", "cancelled"],
            "rescheduling_pending": ["scheduled", "cancelled"],
            "confirmed": ["completed", "no_show", "rescheduling_pending"],
            "completed": [],  # Estado final
            "cancelled": [],  # Estado final
            "no_show": [],  # Estado final
        }
        return new_status.value in transitions.get(self.value, [])

    def is_terminal(self) -> bool:
        """¿Es un estado final (no permite más transiciones)?"""
        return self.value in ["completed", "cancelled", "no_show"]

    def allows_reminders(self) -> bool:
        """¿Puede recibir recordatorios de la cadencia?"""
        return self.value in ["scheduled", "not_confirmed", "confirmed"]

    def awaits_confirmation(self) -> bool:
        """¿El paciente todavía no confirmó?"""
        return self.value in ["scheduled", "not_confirmed"]


class AppointmentEvent(str, Enum):
    """Eventos que disparan transiciones del turno."""

    CONFIRM = "confirm"
    MARK_NOT_CONFIRMED = "mark_not_confirmed"
    REQUEST_RESCHEDULE = "request_reschedule"
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"

    @property
    def target_status(self) -> AppointmentStatus:
        """Estado resultante del evento."""
        targets = {
            "confirm": AppointmentStatus.CONFIRMED,
            "mark_not_confirmed": AppointmentStatus.NOT_CONFIRMED,
            "request_reschedule": AppointmentStatus.RESCHEDULING_PENDING,
            "reschedule": AppointmentStatus.SCHEDULED,
            "cancel": AppointmentStatus.CANCELLED,
            "complete": AppointmentStatus.COMPLETED,
            "mark_no_show": AppointmentStatus.NO_SHOW,
        }
        return targets[self.value]
