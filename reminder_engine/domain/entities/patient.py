from dataclasses import dataclass


@dataclass
class Patient:
    """Paciente de la clínica (solo lectura para el motor de recordatorios)."""

    id: str
    name: str
    phone: str
    email: str | None = None

    @property
    def first_name(self) -> str:
        """Primer nombre para saludos ("María" de "María José Benítez")."""
        parts = self.name.split()
        return parts[0] if parts else self.name
