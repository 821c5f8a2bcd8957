# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Messaging provider port (DIP compliant).
# ============================================================================
"""Messaging Provider Port.

Async boundary to the WhatsApp gateway. Implementations raise TransportError for
network or provider failures.
"""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ProviderSendResult:
    external_message_id: str | None
    raw: dict[str, Any] | None = None


@runtime_checkable
class MessagingProvider(Protocol):
    async def send(self, instance_id: str, phone: str, text: str) -> ProviderSendResult:
        """Send a text message.

        Args:
            instance_id: Provider session (channel external instance id).
            phone: Recipient phone digits.
            text: Message text.

        Returns:
            Provider result with the external message id.

        Raises:
            TransportError: On network or provider failure.
        """
        ...
