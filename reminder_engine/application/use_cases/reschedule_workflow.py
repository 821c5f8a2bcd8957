# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Hand a reschedule request over to the clinic secretary.
# ============================================================================
"""Reschedule Workflow.

Triggered when a patient's reply classifies as RescheduleRequested:

1. Move the appointment to ReschedulingPending.
2. Acknowledge the patient ("the secretary will write to you").
3. Notify the corporate WhatsApp number with the patient's details.
4. Create a RescheduleAlert for the secretary dashboard.

Each step runs in isolation. Failed messaging steps leave a Failed entry in the
message log, and the alert is created regardless so the secretary always sees
the request. Nothing here resolves an alert.
"""

import logging
from dataclasses import dataclass, field
from datetime import tzinfo

from reminder_engine.core.domain.exceptions import ChannelNotFound, ReminderEngineError

from ...domain.entities.appointment import Appointment
from ...domain.entities.message_log import MessageLogEntry
from ...domain.entities.patient import Patient
from ...domain.entities.reschedule_alert import RescheduleAlert
from ...domain.value_objects.channel_state import ChannelPurpose
from ...domain.value_objects.message import MessageKind, MessageStatus
from ...domain.value_objects.phone import whatsapp_link
from ..ports.channel_port import ChannelStore
from ..ports.log_port import MessageLogRepository, RescheduleAlertRepository
from ..services.channel_governor import ChannelGovernor
from ..services.reminder_templates import RESCHEDULE_ACK, RESCHEDULE_CORPORATE_NOTICE, ReminderTemplate
from ..services.state_machine import AppointmentStateMachine

logger = logging.getLogger(__name__)


@dataclass
class RescheduleOutcome:
    alert: RescheduleAlert
    duplicate: bool = False
    transitioned: bool = False
    ack_sent: bool = False
    corporate_notified: bool = False
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert.id,
            "duplicate": self.duplicate,
            "transitioned": self.transitioned,
            "ack_sent": self.ack_sent,
            "corporate_notified": self.corporate_notified,
            "errors": self.errors,
        }


class RescheduleWorkflow:
    """Use case: patient asked for another appointment time."""

    def __init__(
        self,
        state_machine: AppointmentStateMachine,
        governor: ChannelGovernor,
        channel_store: ChannelStore,
        message_log: MessageLogRepository,
        alerts: RescheduleAlertRepository,
        *,
        tz: tzinfo,
        corporate_number: str | None,
    ):
        self._state_machine = state_machine
        self._governor = governor
        self._channel_store = channel_store
        self._message_log = message_log
        self._alerts = alerts
        self._tz = tz
        self._corporate_number = corporate_number

    async def execute(
        self,
        appointment: Appointment,
        patient: Patient,
        message: str,
        channel_id: str | None = None,
    ) -> RescheduleOutcome:
        """Run the hand-off.

        Args:
            appointment: Appointment the patient wants to move.
            patient: Patient who wrote.
            message: Original inbound text.
            channel_id: Channel the patient wrote to (preferred for the reply).

        Returns:
            RescheduleOutcome; duplicate=True when an open alert already existed.
        """
        existing = await self._alerts.find_open_for_appointment(appointment.id)
        if existing is not None:
            logger.info(f"Appointment {appointment.id} already has open reschedule alert {existing.id}")
            return RescheduleOutcome(alert=existing, duplicate=True)

        errors: list[str] = []

        # Step 1: state transition
        transitioned = False
        try:
            await self._state_machine.request_reschedule(appointment.id, reason="patient requested reschedule")
            transitioned = True
        except ReminderEngineError as e:
            errors.append(f"transition: {e.message}")
            logger.warning(f"Reschedule transition failed for appointment {appointment.id}: {e.message}")
        except Exception as e:
            errors.append(f"transition: {e}")
            logger.error(f"Reschedule transition error for appointment {appointment.id}: {e}", exc_info=True)

        link = whatsapp_link(patient.phone)
        variables = {
            "patient_name": patient.first_name,
            "patient_phone": patient.phone,
            "whatsapp_link": link,
            "appointment_date": appointment.formatted_date(self._tz),
            "appointment_time": appointment.formatted_time(self._tz),
            "detected_message": message,
        }

        # Step 2: patient acknowledgement
        ack_sent = await self._notify(
            MessageKind.RESCHEDULE_ACK,
            RESCHEDULE_ACK,
            variables,
            phone=patient.phone,
            appointment=appointment,
            preferred_channel_id=channel_id,
            purpose=ChannelPurpose.REMINDERS,
            errors=errors,
        )

        # Step 3: corporate notification
        corporate_notified = False
        if self._corporate_number:
            corporate_notified = await self._notify(
                MessageKind.CORPORATE_NOTICE,
                RESCHEDULE_CORPORATE_NOTICE,
                {**variables, "patient_name": patient.name},
                phone=self._corporate_number,
                appointment=appointment,
                preferred_channel_id=None,
                purpose=ChannelPurpose.CORPORATE,
                errors=errors,
            )
        else:
            errors.append("corporate: CORPORATE_WHATSAPP_NUMBER not configured")
            logger.warning("Corporate WhatsApp number not configured, reschedule notice not sent")
            await self._record_failure(
                MessageKind.CORPORATE_NOTICE,
                RESCHEDULE_CORPORATE_NOTICE,
                appointment,
                "CORPORATE_WHATSAPP_NUMBER not configured",
            )

        # Step 4: secretary alert, always created
        alert = RescheduleAlert(
            appointment_id=appointment.id,
            patient_id=patient.id,
            detected_message=message,
            whatsapp_link=link,
            patient_name=patient.name,
            patient_phone=patient.phone,
            appointment_time=appointment.scheduled_at,
        )
        alert = await self._alerts.add(alert)

        logger.info(
            f"Reschedule alert {alert.id} created for appointment {appointment.id} "
            f"(transitioned={transitioned}, ack={ack_sent}, corporate={corporate_notified})"
        )
        return RescheduleOutcome(
            alert=alert,
            transitioned=transitioned,
            ack_sent=ack_sent,
            corporate_notified=corporate_notified,
            errors=errors,
        )

    async def _notify(
        self,
        kind: MessageKind,
        template: ReminderTemplate,
        variables: dict,
        *,
        phone: str,
        appointment: Appointment,
        preferred_channel_id: str | None,
        purpose: ChannelPurpose,
        errors: list[str],
    ) -> bool:
        """Send one workflow message. Failures are logged and recorded, never raised."""
        entry = None
        try:
            text = template.render(variables)
            channel_id = await self._pick_channel(preferred_channel_id, purpose)
            entry = await self._message_log.append(
                MessageLogEntry.outbound(
                    kind,
                    text,
                    phone=phone,
                    channel_id=channel_id,
                    appointment_id=appointment.id,
                    patient_id=appointment.patient_id,
                    template_name=template.name,
                )
            )
            receipt = await self._governor.send(
                channel_id, phone, text, pacing=self._governor.config.conversational_pacing
            )
            await self._message_log.update_status(
                entry.id, MessageStatus.SENT, external_message_id=receipt.external_message_id
            )
            return True
        except ReminderEngineError as e:
            error = e.message
            logger.warning(f"Reschedule {kind.value} for appointment {appointment.id} failed: {error}")
        except Exception as e:
            error = str(e)
            logger.error(f"Reschedule {kind.value} for appointment {appointment.id} failed: {e}", exc_info=True)

        errors.append(f"{kind.value}: {error}")
        await self._record_failure(kind, template, appointment, error, phone=phone, entry=entry)
        return False

    async def _record_failure(
        self,
        kind: MessageKind,
        template: ReminderTemplate,
        appointment: Appointment,
        error: str,
        *,
        phone: str | None = None,
        entry: MessageLogEntry | None = None,
    ) -> None:
        try:
            if entry is not None:
                await self._message_log.update_status(entry.id, MessageStatus.FAILED, error=error)
                return
            await self._message_log.append(
                MessageLogEntry.outbound(
                    kind,
                    "",
                    status=MessageStatus.FAILED,
                    phone=phone,
                    appointment_id=appointment.id,
                    patient_id=appointment.patient_id,
                    template_name=template.name,
                    error=error,
                )
            )
        except Exception as e:
            logger.error(f"Could not record failed {kind.value} for appointment {appointment.id}: {e}", exc_info=True)

    async def _pick_channel(self, preferred_channel_id: str | None, purpose: ChannelPurpose) -> str:
        if preferred_channel_id:
            try:
                if self._governor.can_send(preferred_channel_id):
                    return preferred_channel_id
            except ChannelNotFound:
                logger.debug(f"Channel {preferred_channel_id} is not tracked, selecting another")

        candidates = await self._channel_store.list_connected(purpose.value)
        if not candidates and purpose != ChannelPurpose.REMINDERS:
            candidates = await self._channel_store.list_connected(ChannelPurpose.REMINDERS.value)
        return self._governor.select_channel(candidates, purpose.value).id
