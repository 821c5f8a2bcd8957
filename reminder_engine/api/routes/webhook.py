# ============================================================================
# SCOPE: API
# Description: Webhook endpoints for inbound WhatsApp traffic (Evolution API).
#              Fast response: always 200, processing runs in the background.
# ============================================================================
"""
WhatsApp Webhook Endpoints.

ENDPOINTS:
  - POST /webhook/inbound   -> simplified {phone, message} payload
  - POST /webhook/evolution -> raw Evolution API events (messages.upsert,
                               messages.update, connection.update)

Both answer 200 for every payload, valid or not, so the gateway never retries;
rejected payloads are reported in the body and the logs.
"""

import json
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import ValidationError

from reminder_engine.core.domain.exceptions import ChannelNotFound

from ...application.use_cases.process_inbound_message import InboundMessage
from ...core.container import ReminderEngineContainer
from ...infrastructure.messaging.webhook_parser import (
    DeliveryReceipt,
    event_name,
    parse_connection,
    parse_inbound,
    parse_receipts,
)
from ..dependencies import get_container
from ..schemas import InboundWebhookRequest

router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = logging.getLogger(__name__)


async def _read_json(request: Request) -> dict | None:
    raw_body = await request.body()
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Invalid JSON in webhook: {e}")
        return None
    return data if isinstance(data, dict) else None


@router.post("/inbound")
async def inbound_message(
    request: Request,
    background_tasks: BackgroundTasks,
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    """
    Receive a patient message in the simplified format.

    Returns immediately; classification, state changes and replies run in the
    background.
    """
    data = await _read_json(request)
    if data is None:
        return {"status": "error", "message": "Invalid JSON"}

    try:
        body = InboundWebhookRequest.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rejected inbound webhook payload: {e.errors()}")
        return {"status": "error", "message": "Invalid payload"}

    message = InboundMessage(
        phone=body.phone,
        text=body.message,
        timestamp=datetime.fromtimestamp(body.timestamp, tz=UTC) if body.timestamp else None,
        channel_id=body.channel_id,
        external_message_id=body.message_id,
    )
    background_tasks.add_task(container.inbound.handle_safely, message)

    logger.info(f"Inbound message accepted from {body.phone}")
    return {"status": "accepted", "processing": "background"}


@router.post("/evolution")
async def evolution_event(
    request: Request,
    background_tasks: BackgroundTasks,
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    """
    Receive an Evolution API webhook event.

    Returns:
        Immediate response naming the event and how it was handled.
    """
    payload = await _read_json(request)
    if payload is None:
        return {"status": "error", "message": "Invalid JSON"}

    event = event_name(payload)
    instance = payload.get("instance")
    channel = container.governor.channel_for_instance(instance) if instance else None

    if event == "messages.upsert":
        message = parse_inbound(payload, channel.id if channel else None)
        if message is None:
            return {"status": "ignored", "event": event}
        background_tasks.add_task(container.inbound.handle_safely, message)
        return {"status": "accepted", "event": event}

    if event == "messages.update":
        receipts = parse_receipts(payload)
        if receipts:
            background_tasks.add_task(_apply_receipts, container, receipts)
        return {"status": "accepted", "event": event, "receipts": len(receipts)}

    if event == "connection.update":
        update = parse_connection(payload)
        if update is None or channel is None:
            logger.info(f"Connection update for untracked instance {instance}")
            return {"status": "ignored", "event": event}
        try:
            await container.governor.update_connection_state(channel.id, update.state)
        except ChannelNotFound:
            return {"status": "ignored", "event": event}
        return {"status": "ok", "event": event, "state": update.state.value}

    logger.debug(f"Ignoring Evolution event '{event}'")
    return {"status": "ignored", "event": event}


async def _apply_receipts(container: ReminderEngineContainer, receipts: list[DeliveryReceipt]) -> None:
    """Background task: one bad receipt never blocks the others."""
    for receipt in receipts:
        try:
            await container.receipts.execute(receipt.external_message_id, receipt.status)
        except Exception as e:
            logger.error(f"Error applying receipt for {receipt.external_message_id}: {e}", exc_info=True)
