# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Appointment store port (DIP compliant).
# ============================================================================
"""Appointment Store Port.

The booking flow owns appointments; the reminder engine reads due appointments
and persists status transitions and reminder bookkeeping through this interface.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ...domain.entities.appointment import Appointment, StatusTransition


@dataclass(frozen=True)
class AppointmentWindow:
    """Half-open interval [start, end) of appointment start times."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@runtime_checkable
class AppointmentStore(Protocol):
    """Interface for appointment persistence.

    Implementations: InMemoryAppointmentStore (the clinic CRM provides its own)
    """

    async def get(self, appointment_id: str) -> "Appointment | None":
        """Get an appointment by id."""
        ...

    async def find_due(self, window: AppointmentWindow, days_before: int) -> list["Appointment"]:
        """Find non-terminal appointments starting inside the window.

        Args:
            window: Appointment start time interval.
            days_before: Cadence day the window was computed for.

        Returns:
            Appointments ordered by start time.
        """
        ...

    async def find_active_for_patient(self, patient_id: str) -> list["Appointment"]:
        """Find the patient's non-terminal appointments ordered by start time."""
        ...

    async def transition(
        self,
        appointment_id: str,
        transition: "StatusTransition",
        *,
        new_scheduled_at: datetime | None = None,
    ) -> "Appointment":
        """Persist a validated status transition.

        Raises:
            AppointmentNotFound: If the appointment does not exist.
        """
        ...

    async def increment_reminder_attempts(self, appointment_id: str, at: datetime) -> "Appointment":
        """Count one more reminder attempt and stamp last_reminder_at."""
        ...
