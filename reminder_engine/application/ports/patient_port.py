# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Patient store port (DIP compliant).
# ============================================================================
"""Patient Store Port."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ...domain.entities.patient import Patient


@runtime_checkable
class PatientStore(Protocol):
    async def get(self, patient_id: str) -> "Patient | None":
        ...

    async def find_by_phone(self, phone: str) -> "Patient | None":
        """Find a patient by normalized phone digits."""
        ...
