"""
Endpoints de canales de WhatsApp (salud, reanudación, contadores).
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from ...core.container import ReminderEngineContainer
from ..dependencies import get_container

router = APIRouter(prefix="/channels", tags=["channels"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[dict[str, Any]])
async def list_channels(container: ReminderEngineContainer = Depends(get_container)):  # noqa: B008
    """Estado de salud, contadores y pausa de cada canal."""
    return container.governor.snapshot()


@router.post("/{channel_id}/resume")
async def resume_channel(channel_id: str, container: ReminderEngineContainer = Depends(get_container)):  # noqa: B008
    """Reanuda un canal pausado por salud baja."""
    channel = await container.governor.resume(channel_id)
    return channel.to_dict()


@router.post("/reset-daily")
async def reset_daily_counters(container: ReminderEngineContainer = Depends(get_container)):  # noqa: B008
    await container.governor.reset_daily_counters()
    return {"status": "ok", "channels": container.governor.snapshot()}
