# ============================================================================
# SCOPE: API
# Description: Reminder run history, statistics and operator actions.
# ============================================================================
"""
Reminder Endpoints.

ENDPOINTS:
  - GET  /reminders/history  -> recent trigger runs
  - GET  /reminders/stats    -> totals, message log counts, scheduled jobs
  - GET  /reminders/messages -> message log (optionally per appointment)
  - POST /reminders/trigger  -> run one cadence slot now
  - POST /reminders/bulk     -> manual bulk send (background, slow pacing)
  - GET  /reminders/no-confirmation       -> recent unconfirmed-appointment checks
  - POST /reminders/no-confirmation/check -> run that check now
"""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from ...core.container import ReminderEngineContainer
from ..dependencies import get_container
from ..schemas import BulkSendRequest, ManualTriggerRequest

router = APIRouter(prefix="/reminders", tags=["reminders"])
logger = logging.getLogger(__name__)


@router.get("/history", response_model=list[dict[str, Any]])
async def get_history(
    limit: int = Query(default=20, ge=1, le=200),
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    return [report.to_dict() for report in container.dispatcher.history(limit)]


@router.get("/stats")
async def get_statistics(container: ReminderEngineContainer = Depends(get_container)):  # noqa: B008
    """
    Estadísticas de envíos.

    Returns:
        Totales de las ejecuciones en memoria, conteo del registro de mensajes
        por estado y los jobs programados.
    """
    return {
        "runs": container.dispatcher.statistics(),
        "messages_by_status": await container.message_log.count_by_status(),
        "scheduler_running": container.scheduler.is_running,
        "jobs": container.scheduler.get_jobs_info(),
    }


@router.get("/messages", response_model=list[dict[str, Any]])
async def list_messages(
    limit: int = Query(default=50, ge=1, le=500),
    appointment_id: str | None = Query(default=None),
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    entries = await container.message_log.list_recent(limit=limit, appointment_id=appointment_id)
    return [entry.to_dict() for entry in entries]


@router.post("/trigger")
async def trigger_now(
    body: ManualTriggerRequest,
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    """
    Ejecuta un slot de la cadencia inmediatamente.

    The cutoff hour and the dedup ledger apply as for scheduled runs, so a
    manual run never double-sends.
    """
    resolver = container.resolver
    if (
        resolver.lookup_template(body.days_before, body.hour_bucket, confirmed=False) is None
        and resolver.lookup_template(body.days_before, body.hour_bucket, confirmed=True) is None
    ):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"No cadence slot for {body.days_before} day(s) before at '{body.hour_bucket}'",
        )

    report = await container.scheduler.trigger_now(body.days_before, body.hour_bucket)
    return report.to_dict()


@router.post("/bulk", status_code=status.HTTP_202_ACCEPTED)
async def bulk_send(
    body: BulkSendRequest,
    background_tasks: BackgroundTasks,
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    """
    Envío masivo manual.

    Sends are paced 30-90 seconds apart, so the batch runs in the background;
    results land in the message log.
    """
    background_tasks.add_task(_run_bulk_send, container, body)
    return {
        "status": "accepted",
        "recipients": len(body.patient_ids),
        "processing": "background",
    }


async def _run_bulk_send(container: ReminderEngineContainer, body: BulkSendRequest) -> None:
    try:
        await container.bulk_send.execute(body.patient_ids, body.message, body.channel_id)
    except Exception as e:
        logger.error(f"Bulk send failed: {e}", exc_info=True)


@router.get("/no-confirmation", response_model=list[dict[str, Any]])
async def get_no_confirmation_checks(
    limit: int = Query(default=20, ge=1, le=200),
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    """Citas próximas sin confirmar detectadas por los últimos chequeos."""
    return [report.to_dict() for report in container.no_confirmation.history(limit)]


@router.post("/no-confirmation/check")
async def run_no_confirmation_check(container: ReminderEngineContainer = Depends(get_container)):  # noqa: B008
    report = await container.no_confirmation.execute()
    return report.to_dict()
