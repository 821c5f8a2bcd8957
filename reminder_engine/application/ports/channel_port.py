# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Channel store port (DIP compliant).
# ============================================================================
"""Channel Store Port.

Persists channel registrations and the counters the ChannelGovernor maintains.
Nothing but the governor writes through this interface.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ...domain.entities.channel import Channel, SendResult


@runtime_checkable
class ChannelStore(Protocol):
    async def list_connected(self, purpose: str | None = None) -> list["Channel"]:
        """List connected channels serving the purpose (general channels serve all)."""
        ...

    async def list_all(self) -> list["Channel"]:
        ...

    async def get(self, channel_id: str) -> "Channel | None":
        ...

    async def record_send(self, channel_id: str, result: "SendResult") -> None:
        """Record the outcome of one send for rate accounting."""
        ...

    async def save(self, channel: "Channel") -> None:
        """Persist counters, health and connection state."""
        ...
