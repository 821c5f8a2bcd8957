"""Message log value objects."""

from enum import Enum


class MessageDirection(str, Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class MessageKind(str, Enum):
    """Tipo de mensaje registrado."""

    REMINDER = "reminder"
    REINFORCEMENT = "reinforcement"
    RESCHEDULE_ACK = "reschedule_ack"
    CORPORATE_NOTICE = "corporate_notice"
    BULK = "bulk"
    INBOUND = "inbound"


class MessageStatus(str, Enum):
    """Estado de entrega de un mensaje."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    DELIVERED = "delivered"
    READ = "read"
    RECEIVED = "received"  # Mensajes entrantes

    @classmethod
    def from_provider(cls, status: str | None) -> "MessageStatus | None":
        """Mapear el estado de un messages.update de Evolution API."""
        mapping = {
            "PENDING": cls.PENDING,
            "SERVER_ACK": cls.SENT,
            "DELIVERY_ACK": cls.DELIVERED,
            "READ": cls.READ,
            "PLAYED": cls.READ,
            "ERROR": cls.FAILED,
        }
        return mapping.get((status or "").upper())
