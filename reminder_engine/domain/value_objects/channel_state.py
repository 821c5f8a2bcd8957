"""Channel connection state and purpose."""

from enum import Enum


class ConnectionState(str, Enum):
    """Estado de conexión de una instancia de WhatsApp."""

    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"
    BLOCKED = "blocked"  # Pausado por salud baja o bloqueo del proveedor

    @classmethod
    def from_provider(cls, state: str | None) -> "ConnectionState":
        """Mapear el estado reportado por Evolution API ("open", "connecting", "close")."""
        mapping = {
            "open": cls.CONNECTED,
            "connected": cls.CONNECTED,
            "connecting": cls.CONNECTING,
            "close": cls.DISCONNECTED,
            "closed": cls.DISCONNECTED,
            "disconnected": cls.DISCONNECTED,
            "blocked": cls.BLOCKED,
        }
        return mapping.get((state or "").lower(), cls.DISCONNECTED)


class ChannelPurpose(str, Enum):
    """Uso asignado a un canal."""

    REMINDERS = "reminders"
    CORPORATE = "corporate"
    GENERAL = "general"
