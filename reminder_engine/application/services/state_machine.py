# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Appointment state machine shared by cadence, classifier and
#              reschedule workflow.
# ============================================================================
"""Appointment State Machine.

Validates events against AppointmentStatus.can_transition_to, stamps each
transition and appends it to the audit log. Re-applying an event whose target
already holds is a no-op.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from reminder_engine.core.domain.exceptions import AppointmentNotFound, InvalidTransition

from ...domain.entities.appointment import Appointment, StatusTransition
from ...domain.value_objects.appointment_status import AppointmentEvent
from ..ports.appointment_port import AppointmentStore
from ..ports.log_port import TransitionAuditLog

logger = logging.getLogger(__name__)


class AppointmentStateMachine:
    """Single entry point for appointment status changes."""

    def __init__(
        self,
        store: AppointmentStore,
        audit_log: TransitionAuditLog,
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._audit_log = audit_log
        self._clock = clock or (lambda: datetime.now(UTC))

    async def transition(
        self,
        appointment_id: str,
        event: AppointmentEvent,
        *,
        new_scheduled_at: datetime | None = None,
        reason: str | None = None,
    ) -> Appointment:
        """Apply an event to an appointment.

        Args:
            appointment_id: Appointment to transition.
            event: Event to apply.
            new_scheduled_at: New start time, required for RESCHEDULE.
            reason: Free text stored in the audit trail.

        Returns:
            The appointment after the transition (unchanged on a no-op).

        Raises:
            AppointmentNotFound: Unknown appointment.
            InvalidTransition: The current state does not permit the event.
            ValueError: RESCHEDULE without a new time.
        """
        appointment = await self._store.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFound(appointment_id)

        target = event.target_status
        if event == AppointmentEvent.RESCHEDULE:
            if new_scheduled_at is None:
                raise ValueError("RESCHEDULE requires new_scheduled_at")
        elif appointment.status == target:
            logger.debug(f"Appointment {appointment_id} already {target.value}, '{event.value}' is a no-op")
            return appointment

        if not appointment.status.can_transition_to(target):
            raise InvalidTransition(appointment_id, appointment.status.value, event.value)

        record = StatusTransition(
            appointment_id=appointment_id,
            from_status=appointment.status,
            to_status=target,
            event=event,
            occurred_at=self._clock(),
            reason=reason,
        )
        updated = await self._store.transition(appointment_id, record, new_scheduled_at=new_scheduled_at)
        await self._audit_log.append(record)

        logger.info(f"Appointment {appointment_id}: {record.from_status.value} -> {record.to_status.value}")
        return updated

    async def confirm(self, appointment_id: str, reason: str | None = None) -> Appointment:
        return await self.transition(appointment_id, AppointmentEvent.CONFIRM, reason=reason)

    async def mark_not_confirmed(self, appointment_id: str, reason: str | None = None) -> Appointment:
        return await self.transition(appointment_id, AppointmentEvent.MARK_NOT_CONFIRMED, reason=reason)

    async def request_reschedule(self, appointment_id: str, reason: str | None = None) -> Appointment:
        return await self.transition(appointment_id, AppointmentEvent.REQUEST_RESCHEDULE, reason=reason)

    async def reschedule(
        self, appointment_id: str, new_scheduled_at: datetime, reason: str | None = None
    ) -> Appointment:
        return await self.transition(
            appointment_id, AppointmentEvent.RESCHEDULE, new_scheduled_at=new_scheduled_at, reason=reason
        )

    async def cancel(self, appointment_id: str, reason: str | None = None) -> Appointment:
        return await self.transition(appointment_id, AppointmentEvent.CANCEL, reason=reason)

    async def complete(self, appointment_id: str) -> Appointment:
        return await self.transition(appointment_id, AppointmentEvent.COMPLETE)

    async def mark_no_show(self, appointment_id: str) -> Appointment:
        return await self.transition(appointment_id, AppointmentEvent.MARK_NO_SHOW)
