# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Warn the secretary about unconfirmed appointments about to start.
# ============================================================================
"""No-Confirmation Alerts.

Recurring check for appointments that start within the next hour and are still
Scheduled or NotConfirmed. Each one raises a notice to the corporate WhatsApp
number for the secretary:

- warning: more than ``critical_minutes`` left, send one last reminder
- critical: ``critical_minutes`` or less left, call the patient now

Each (appointment, date, severity) is notified once; the claim lives in the
reminder ledger, so a restart or an overlapping run never repeats a notice. A
failed notice releases its claim and is retried on the next run. Every run is
kept in a short history for the dashboard.
"""

import logging
import math
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from reminder_engine.core.domain.exceptions import ReminderEngineError

from ...domain.entities.message_log import MessageLogEntry
from ...domain.value_objects.channel_state import ChannelPurpose
from ...domain.value_objects.message import MessageKind, MessageStatus
from ...domain.value_objects.phone import whatsapp_link
from ..ports.appointment_port import AppointmentStore, AppointmentWindow
from ..ports.channel_port import ChannelStore
from ..ports.ledger_port import ReminderLedger
from ..ports.log_port import MessageLogRepository
from ..ports.patient_port import PatientStore
from ..services.channel_governor import ChannelGovernor
from ..services.reminder_templates import NO_CONFIRMATION_NOTICE

logger = logging.getLogger(__name__)

WARNING = "warning"
CRITICAL = "critical"

SEVERITY_LABELS = {WARNING: "⚠️ ADVERTENCIA", CRITICAL: "🚨 CRÍTICO"}
RECOMMENDED_ACTIONS = {
    WARNING: "🟡 Enviar un último recordatorio por WhatsApp.",
    CRITICAL: "🔴 Llamar ahora al paciente para confirmar su asistencia.",
}


@dataclass
class NoConfirmationAlert:
    """Unconfirmed appointment found by one check."""

    appointment_id: str
    patient_id: str
    patient_name: str
    patient_phone: str | None
    appointment_time: datetime
    minutes_until: int
    severity: str
    status: str
    notified: bool = False
    duplicate: bool = False
    error: str | None = None

    @property
    def dedup_key(self) -> str:
        return f"no_confirmation:{self.appointment_id}:{self.appointment_time.date().isoformat()}:{self.severity}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "patient_id": self.patient_id,
            "patient_name": self.patient_name,
            "patient_phone": self.patient_phone,
            "appointment_time": self.appointment_time.isoformat(),
            "minutes_until": self.minutes_until,
            "severity": self.severity,
            "status": self.status,
            "notified": self.notified,
            "duplicate": self.duplicate,
            "error": self.error,
        }


@dataclass
class NoConfirmationReport:
    checked_at: datetime
    alerts: list[NoConfirmationAlert] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.alerts)

    @property
    def alerts_sent(self) -> int:
        return sum(1 for a in self.alerts if a.notified)

    @property
    def critical_alerts(self) -> int:
        return sum(1 for a in self.alerts if a.notified and a.severity == CRITICAL)

    @property
    def failed(self) -> int:
        return sum(1 for a in self.alerts if a.error is not None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked_at": self.checked_at.isoformat(),
            "processed": self.processed,
            "alerts_sent": self.alerts_sent,
            "critical_alerts": self.critical_alerts,
            "failed": self.failed,
            "alerts": [alert.to_dict() for alert in self.alerts],
        }


class NoConfirmationAlertUseCase:
    """Use case: tell the secretary which patients still have not confirmed."""

    def __init__(
        self,
        appointments: AppointmentStore,
        patients: PatientStore,
        channel_store: ChannelStore,
        governor: ChannelGovernor,
        message_log: MessageLogRepository,
        ledger: ReminderLedger,
        *,
        tz,
        corporate_number: str | None,
        window_minutes: int = 60,
        critical_minutes: int = 30,
        history_size: int = 50,
        clock: Callable[[], datetime] | None = None,
    ):
        self._appointments = appointments
        self._patients = patients
        self._channel_store = channel_store
        self._governor = governor
        self._message_log = message_log
        self._ledger = ledger
        self._tz = tz
        self._corporate_number = corporate_number
        self.window_minutes = window_minutes
        self.critical_minutes = critical_minutes
        self._clock = clock or (lambda: datetime.now(self._tz))
        self._history: deque[NoConfirmationReport] = deque(maxlen=history_size)

    def severity_for(self, minutes_until: int) -> str:
        return CRITICAL if minutes_until <= self.critical_minutes else WARNING

    def history(self, limit: int | None = None) -> list[NoConfirmationReport]:
        """Most recent checks first."""
        reports = list(reversed(self._history))
        return reports[:limit] if limit else reports

    async def find_unconfirmed(self, now: datetime) -> list[NoConfirmationAlert]:
        """Appointments starting in the next window that still await confirmation."""
        window = AppointmentWindow(start=now, end=now + timedelta(minutes=self.window_minutes))
        due = await self._appointments.find_due(window, 0)

        found = []
        for appointment in due:
            if not appointment.status.awaits_confirmation():
                continue
            patient = await self._patients.get(appointment.patient_id)
            minutes_until = max(0, math.floor((appointment.scheduled_at - now).total_seconds() / 60))
            found.append(
                NoConfirmationAlert(
                    appointment_id=appointment.id,
                    patient_id=appointment.patient_id,
                    patient_name=patient.name if patient else "Paciente",
                    patient_phone=patient.phone if patient else None,
                    appointment_time=appointment.local_start(self._tz),
                    minutes_until=minutes_until,
                    severity=self.severity_for(minutes_until),
                    status=appointment.status.display_name,
                )
            )
        return found

    async def execute(self, now: datetime | None = None) -> NoConfirmationReport:
        """Run one check and notify the secretary of every new alert."""
        now = (now or self._clock()).astimezone(self._tz)
        report = NoConfirmationReport(checked_at=now, alerts=await self.find_unconfirmed(now))

        if report.alerts and not self._corporate_number:
            for alert in report.alerts:
                alert.error = "CORPORATE_WHATSAPP_NUMBER not configured"
            logger.warning(f"{report.processed} unconfirmed appointment(s) found but no corporate number is configured")
            self._history.append(report)
            return report

        for alert in report.alerts:
            if not await self._ledger.claim(alert.dedup_key):
                alert.duplicate = True
                continue
            try:
                await self._notify(alert)
                alert.notified = True
            except ReminderEngineError as e:
                alert.error = e.message
                await self._ledger.release(alert.dedup_key)
                logger.warning(f"No-confirmation notice for appointment {alert.appointment_id} failed: {e.message}")

        self._history.append(report)
        if report.alerts:
            logger.info(
                f"No-confirmation check: processed={report.processed} sent={report.alerts_sent} "
                f"critical={report.critical_alerts} failed={report.failed}"
            )
        return report

    async def _notify(self, alert: NoConfirmationAlert) -> None:
        text = NO_CONFIRMATION_NOTICE.render(
            {
                "severity_label": SEVERITY_LABELS[alert.severity],
                "patient_name": alert.patient_name,
                "patient_phone": alert.patient_phone or "N/A",
                "whatsapp_link": whatsapp_link(alert.patient_phone) if alert.patient_phone else "N/A",
                "appointment_time": alert.appointment_time.strftime("%H:%M"),
                "minutes_until": alert.minutes_until,
                "status_label": alert.status,
                "recommended_action": RECOMMENDED_ACTIONS[alert.severity],
            }
        )

        channel_id = None
        entry = None
        try:
            channel_id = await self._pick_channel()
            entry = await self._message_log.append(
                MessageLogEntry.outbound(
                    MessageKind.CORPORATE_NOTICE,
                    text,
                    phone=self._corporate_number,
                    channel_id=channel_id,
                    appointment_id=alert.appointment_id,
                    patient_id=alert.patient_id,
                    template_name=NO_CONFIRMATION_NOTICE.name,
                )
            )
            receipt = await self._governor.send(
                channel_id, self._corporate_number, text, pacing=self._governor.config.conversational_pacing
            )
        except ReminderEngineError as e:
            if entry is not None:
                await self._message_log.update_status(entry.id, MessageStatus.FAILED, error=e.message)
            else:
                await self._record_failure(alert, e.message, channel_id=channel_id)
            raise

        await self._message_log.update_status(
            entry.id, MessageStatus.SENT, external_message_id=receipt.external_message_id
        )
        logger.info(
            f"No-confirmation {alert.severity} sent for appointment {alert.appointment_id} "
            f"({alert.minutes_until} min left)"
        )

    async def _record_failure(self, alert: NoConfirmationAlert, error: str, channel_id: str | None = None) -> None:
        await self._message_log.append(
            MessageLogEntry.outbound(
                MessageKind.CORPORATE_NOTICE,
                "",
                status=MessageStatus.FAILED,
                phone=self._corporate_number,
                channel_id=channel_id,
                appointment_id=alert.appointment_id,
                patient_id=alert.patient_id,
                template_name=NO_CONFIRMATION_NOTICE.name,
                error=error,
            )
        )

    async def _pick_channel(self) -> str:
        candidates = await self._channel_store.list_connected(ChannelPurpose.CORPORATE.value)
        if not candidates:
            candidates = await self._channel_store.list_connected(ChannelPurpose.REMINDERS.value)
        return self._governor.select_channel(candidates, ChannelPurpose.CORPORATE.value).id

