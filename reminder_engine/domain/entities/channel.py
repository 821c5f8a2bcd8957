"""Channel Entity.

One outbound WhatsApp session (an Evolution API instance). Counters and health
are mutated exclusively by the ChannelGovernor.
"""

from dataclasses import dataclass
from datetime import datetime

from ..value_objects.channel_state import ChannelPurpose, ConnectionState


@dataclass
class Channel:
    id: str
    external_instance_id: str
    purpose: ChannelPurpose = ChannelPurpose.REMINDERS
    health_score: int = 100
    daily_message_count: int = 0
    daily_sent_reset_at: datetime | None = None
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    phone_number: str | None = None

    @property
    def is_connected(self) -> bool:
        return self.connection_state == ConnectionState.CONNECTED

    def serves(self, purpose: ChannelPurpose | str | None) -> bool:
        """Un canal general sirve para cualquier propósito."""
        if purpose is None:
            return True
        return self.purpose in (ChannelPurpose(purpose), ChannelPurpose.GENERAL)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_instance_id": self.external_instance_id,
            "purpose": self.purpose.value,
            "health_score": self.health_score,
            "daily_message_count": self.daily_message_count,
            "daily_sent_reset_at": self.daily_sent_reset_at.isoformat() if self.daily_sent_reset_at else None,
            "connection_state": self.connection_state.value,
            "phone_number": self.phone_number,
        }


@dataclass(frozen=True)
class SendResult:
    """Resultado de un envío informado al ChannelStore."""

    success: bool
    external_message_id: str | None = None
    error: str | None = None
    sent_at: datetime | None = None
