"""
Endpoints de estado de turnos (transiciones y auditoría).

Used by the booking flow and the secretary, e.g. to move a ReschedulingPending
appointment to its new time.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from reminder_engine.core.domain.exceptions import AppointmentNotFound

from ...core.container import ReminderEngineContainer
from ...domain.value_objects.appointment_status import AppointmentEvent
from ..dependencies import get_container
from ..schemas import AppointmentEventRequest

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: str,
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    appointment = await container.appointments.get(appointment_id)
    if appointment is None:
        raise AppointmentNotFound(appointment_id)
    return appointment.to_dict()


@router.post("/{appointment_id}/events")
async def apply_event(
    appointment_id: str,
    body: AppointmentEventRequest,
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    """
    Aplica un evento a la máquina de estados del turno.

    Responde 409 si el estado actual no permite el evento.
    """
    if body.event == AppointmentEvent.RESCHEDULE and body.new_scheduled_at is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="new_scheduled_at is required for 'reschedule'",
        )
    appointment = await container.state_machine.transition(
        appointment_id,
        body.event,
        new_scheduled_at=body.new_scheduled_at,
        reason=body.reason,
    )
    return appointment.to_dict()


@router.get("/{appointment_id}/transitions", response_model=list[dict[str, Any]])
async def list_transitions(
    appointment_id: str,
    container: ReminderEngineContainer = Depends(get_container),  # noqa: B008
):
    transitions = await container.audit_log.list_for(appointment_id)
    return [t.to_dict() for t in transitions]
