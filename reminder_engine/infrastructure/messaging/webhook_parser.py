# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Reminder Engine)
# Description: Parse Evolution API webhook events into engine inputs.
# ============================================================================
"""Evolution API webhook parsing.

Supported events (Evolution sends them with dots or underscores, in either case):

- ``messages.upsert``: inbound patient message -> InboundMessage
- ``messages.update``: delivery/read receipt -> DeliveryReceipt
- ``connection.update``: instance state -> ConnectionUpdate

Anything else parses to ``None`` and is ignored by the webhook route.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ...application.use_cases.process_inbound_message import InboundMessage
from ...domain.value_objects.channel_state import ConnectionState
from ...domain.value_objects.message import MessageStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryReceipt:
    instance: str | None
    external_message_id: str
    status: MessageStatus


@dataclass(frozen=True)
class ConnectionUpdate:
    instance: str
    state: ConnectionState


def event_name(payload: dict[str, Any]) -> str:
    """Normalize the event name ("MESSAGES_UPSERT" -> "messages.upsert")."""
    return str(payload.get("event") or "").strip().lower().replace("_", ".")


def _first(data: Any) -> dict[str, Any]:
    # Some Evolution versions wrap data in a list
    if isinstance(data, list):
        data = data[0] if data else {}
    return data if isinstance(data, dict) else {}


def extract_text(message: dict[str, Any] | None) -> str | None:
    """Text of a WhatsApp message (plain or extended)."""
    if not message:
        return None
    if message.get("conversation"):
        return message["conversation"]
    extended = message.get("extendedTextMessage") or {}
    if extended.get("text"):
        return extended["text"]
    for media in ("imageMessage", "videoMessage"):
        caption = (message.get(media) or {}).get("caption")
        if caption:
            return caption
    return None


def parse_inbound(payload: dict[str, Any], channel_id: str | None = None) -> InboundMessage | None:
    """Parse a messages.upsert event. Own messages and non-text messages return None."""
    data = _first(payload.get("data"))
    key = data.get("key") or {}
    if key.get("fromMe"):
        return None

    remote_jid = key.get("remoteJid") or ""
    if not remote_jid or remote_jid.endswith("@g.us"):
        return None

    text = extract_text(data.get("message"))
    if text is None:
        logger.debug(f"Ignoring non-text message from {remote_jid}")
        return None

    timestamp = None
    raw_ts = data.get("messageTimestamp")
    if raw_ts:
        try:
            timestamp = datetime.fromtimestamp(int(raw_ts), tz=UTC)
        except (TypeError, ValueError, OverflowError):
            logger.debug(f"Invalid messageTimestamp {raw_ts!r}")

    return InboundMessage(
        phone=remote_jid.split("@", 1)[0],
        text=text,
        timestamp=timestamp,
        channel_id=channel_id,
        external_message_id=key.get("id"),
    )


def parse_receipts(payload: dict[str, Any]) -> list[DeliveryReceipt]:
    """Parse a messages.update event into receipts with a known status."""
    data = payload.get("data")
    items = data if isinstance(data, list) else [data or {}]
    receipts = []
    for item in items:
        if not isinstance(item, dict):
            continue
        key = item.get("key") or {}
        external_id = item.get("keyId") or key.get("id")
        raw_status = item.get("status") or (item.get("update") or {}).get("status")
        status = MessageStatus.from_provider(str(raw_status) if raw_status is not None else None)
        if external_id and status is not None:
            receipts.append(DeliveryReceipt(payload.get("instance"), external_id, status))
    return receipts


def parse_connection(payload: dict[str, Any]) -> ConnectionUpdate | None:
    """Parse a connection.update event."""
    data = _first(payload.get("data"))
    instance = payload.get("instance") or data.get("instance")
    if not instance:
        return None
    return ConnectionUpdate(instance=instance, state=ConnectionState.from_provider(data.get("state")))
