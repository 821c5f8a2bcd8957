# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: React to inbound patient messages and delivery receipts.
# ============================================================================
"""Inbound message processing.

ProcessInboundMessageUseCase logs the reply, credits the channel's response
rate, classifies the text and then confirms the appointment or starts the
reschedule hand-off. ProcessDeliveryReceiptUseCase applies provider delivery and
read receipts to the message log and to channel health.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from reminder_engine.core.domain.exceptions import ChannelNotFound, InvalidTransition

from ...domain.entities.appointment import Appointment
from ...domain.entities.message_log import MessageLogEntry
from ...domain.value_objects.appointment_status import AppointmentStatus
from ...domain.value_objects.intent import ClassificationResult, MessageIntent
from ...domain.value_objects.message import MessageStatus
from ...domain.value_objects.phone import normalize_phone
from ..ports.appointment_port import AppointmentStore
from ..ports.log_port import MessageLogRepository
from ..ports.patient_port import PatientStore
from ..services.channel_governor import ChannelGovernor
from ..services.intent_classifier import IntentClassifier
from ..services.state_machine import AppointmentStateMachine
from .reschedule_workflow import RescheduleWorkflow

logger = logging.getLogger(__name__)


@dataclass
class InboundMessage:
    phone: str
    text: str
    timestamp: datetime | None = None
    channel_id: str | None = None
    external_message_id: str | None = None


@dataclass
class InboundResult:
    """Outcome of processing one inbound message.

    status is one of: confirmed, already_confirmed, reschedule_requested,
    unrecognized, unknown_patient, no_appointment, invalid_transition, error.
    """

    status: str
    classification: ClassificationResult | None = None
    patient_id: str | None = None
    appointment_id: str | None = None
    alert_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "intent": self.classification.intent.value if self.classification else None,
            "matched_keyword": self.classification.matched_keyword if self.classification else None,
            "patient_id": self.patient_id,
            "appointment_id": self.appointment_id,
            "alert_id": self.alert_id,
        }


CONFIRMABLE = (AppointmentStatus.SCHEDULED, AppointmentStatus.NOT_CONFIRMED, AppointmentStatus.CONFIRMED)
RESCHEDULABLE = (*CONFIRMABLE, AppointmentStatus.RESCHEDULING_PENDING)


class ProcessInboundMessageUseCase:
    def __init__(
        self,
        patients: PatientStore,
        appointments: AppointmentStore,
        state_machine: AppointmentStateMachine,
        classifier: IntentClassifier,
        workflow: RescheduleWorkflow,
        governor: ChannelGovernor,
        message_log: MessageLogRepository,
        *,
        default_country_code: str = "595",
        clock: Callable[[], datetime] | None = None,
    ):
        self._patients = patients
        self._appointments = appointments
        self._state_machine = state_machine
        self._classifier = classifier
        self._workflow = workflow
        self._governor = governor
        self._message_log = message_log
        self._country_code = default_country_code
        self._clock = clock or (lambda: datetime.now(UTC))

    async def handle_safely(self, message: InboundMessage) -> InboundResult:
        """Webhook entry point: never raises."""
        try:
            return await self.execute(message)
        except Exception as e:
            logger.error(f"Error processing inbound message from {message.phone}: {e}", exc_info=True)
            return InboundResult(status="error")

    async def execute(self, message: InboundMessage) -> InboundResult:
        phone = normalize_phone(message.phone, self._country_code)
        patient = await self._patients.find_by_phone(phone)
        classification = self._classifier.classify(message.text)

        await self._message_log.append(
            MessageLogEntry.inbound(
                message.text or "",
                phone=phone,
                channel_id=message.channel_id,
                patient_id=patient.id if patient else None,
                external_message_id=message.external_message_id,
            )
        )

        if message.channel_id:
            try:
                await self._governor.record_response(message.channel_id)
            except ChannelNotFound:
                logger.debug(f"Inbound message on untracked channel {message.channel_id}")

        if patient is None:
            logger.info(f"Inbound message from unknown number {phone} ({classification.intent.value})")
            return InboundResult(status="unknown_patient", classification=classification)

        if classification.intent == MessageIntent.UNRECOGNIZED:
            logger.info(f"Unrecognized reply from patient {patient.id}")
            return InboundResult(status="unrecognized", classification=classification, patient_id=patient.id)

        statuses = CONFIRMABLE if classification.intent == MessageIntent.CONFIRMED else RESCHEDULABLE
        appointment = self._target_appointment(await self._appointments.find_active_for_patient(patient.id), statuses)
        if appointment is None:
            logger.info(f"Patient {patient.id} replied '{classification.intent.value}' without an upcoming appointment")
            return InboundResult(status="no_appointment", classification=classification, patient_id=patient.id)

        result = InboundResult(
            status=classification.intent.value,
            classification=classification,
            patient_id=patient.id,
            appointment_id=appointment.id,
        )

        if classification.intent == MessageIntent.CONFIRMED:
            if appointment.status == AppointmentStatus.CONFIRMED:
                result.status = "already_confirmed"
                return result
            try:
                await self._state_machine.confirm(appointment.id, reason=f"patient reply: {classification.matched_keyword}")
            except InvalidTransition as e:
                logger.warning(f"Could not confirm appointment {appointment.id}: {e.message}")
                result.status = "invalid_transition"
            return result

        outcome = await self._workflow.execute(appointment, patient, message.text, channel_id=message.channel_id)
        result.alert_id = outcome.alert.id
        return result

    def _target_appointment(
        self, appointments: list[Appointment], statuses: tuple[AppointmentStatus, ...]
    ) -> Appointment | None:
        """Nearest appointment that has not ended yet."""
        now = self._clock()
        upcoming = [
            a
            for a in appointments
            if a.status in statuses and a.scheduled_at + timedelta(minutes=a.duration_minutes) >= now
        ]
        return min(upcoming, key=lambda a: a.scheduled_at, default=None)


# Receipts never move a message backwards (a late DELIVERED after READ)
_STATUS_RANK = {
    MessageStatus.PENDING: 0,
    MessageStatus.SENT: 1,
    MessageStatus.DELIVERED: 2,
    MessageStatus.READ: 3,
}


class ProcessDeliveryReceiptUseCase:
    def __init__(self, message_log: MessageLogRepository, governor: ChannelGovernor):
        self._message_log = message_log
        self._governor = governor

    async def execute(self, external_message_id: str, status: MessageStatus) -> bool:
        """Apply a receipt. Returns False when the message is unknown."""
        entry = await self._message_log.find_by_external_id(external_message_id)
        if entry is None:
            logger.debug(f"Receipt for unknown message {external_message_id}")
            return False

        current = _STATUS_RANK.get(entry.status)
        incoming = _STATUS_RANK.get(status)
        if status == MessageStatus.FAILED or (current is not None and incoming is not None and incoming > current):
            await self._message_log.update_status(entry.id, status)

        if entry.channel_id:
            try:
                await self._governor.record_receipt(entry.channel_id, external_message_id, status)
            except ChannelNotFound:
                logger.debug(f"Receipt for untracked channel {entry.channel_id}")
        return True
