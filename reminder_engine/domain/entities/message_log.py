"""Message log entry (append-only audit of every inbound and outbound message)."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..value_objects.message import MessageDirection, MessageKind, MessageStatus


@dataclass
class MessageLogEntry:
    direction: MessageDirection
    kind: MessageKind
    content: str
    status: MessageStatus = MessageStatus.PENDING
    phone: str | None = None
    channel_id: str | None = None
    appointment_id: str | None = None
    patient_id: str | None = None
    template_name: str | None = None
    external_message_id: str | None = None
    error: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def outbound(cls, kind: MessageKind, content: str, **kwargs) -> "MessageLogEntry":
        return cls(direction=MessageDirection.OUTBOUND, kind=kind, content=content, **kwargs)

    @classmethod
    def inbound(cls, content: str, **kwargs) -> "MessageLogEntry":
        return cls(
            direction=MessageDirection.INBOUND,
            kind=MessageKind.INBOUND,
            content=content,
            status=MessageStatus.RECEIVED,
            **kwargs,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.direction.value,
            "kind": self.kind.value,
            "content": self.content,
            "status": self.status.value,
            "phone": self.phone,
            "channel_id": self.channel_id,
            "appointment_id": self.appointment_id,
            "patient_id": self.patient_id,
            "template_name": self.template_name,
            "external_message_id": self.external_message_id,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
