"""
Endpoints del panel de reagendamientos para la secretaria.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from ...core.container import ReminderEngineContainer
from ..dependencies import get_container
from ..schemas import ResolveAlertRequest

router = APIRouter(prefix="/reschedule-alerts", tags=["reschedule-alerts"])


@router.get("", response_model=list[dict[str, Any]])
async def list_alerts(
    is_read: bool | None = Query(default=None),
    is_resolved: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    """Lista las alertas, más recientes primero."""
    alerts = await container.alert_service.list_alerts(is_read=is_read, is_resolved=is_resolved, limit=limit)
    return [alert.to_dict() for alert in alerts]


@router.get("/unread-count")
async def unread_count(container: ReminderEngineContainer = Depends(get_container)):  # noqa: B008
    return {"unread": await container.alert_service.unread_count()}


@router.get("/{alert_id}")
async def get_alert(alert_id: str, container: ReminderEngineContainer = Depends(get_container)):  # noqa: B008
    alert = await container.alert_service.get(alert_id)
    return alert.to_dict()


@router.post("/{alert_id}/read")
async def mark_read(alert_id: str, container: ReminderEngineContainer = Depends(get_container)):  # noqa: B008
    alert = await container.alert_service.mark_read(alert_id)
    return alert.to_dict()


@router.post("/{alert_id}/resolve")
async def mark_resolved(
    alert_id: str,
    body: ResolveAlertRequest,
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    """
    Marca la alerta como resuelta.

    Responde 409 si ya había sido resuelta.
    """
    alert = await container.alert_service.mark_resolved(alert_id, body.resolved_by)
    return alert.to_dict()
