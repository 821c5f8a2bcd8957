# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Reminder Engine)
# Description: In-memory implementations of every persistence port.
# ============================================================================
"""In-memory adapters.

Used by tests and by deployments without DATABASE_URL/REDIS_URL. Appointment
reads return copies so callers see snapshots, as they would from a database.
"""

import copy
import logging
from datetime import UTC, datetime

from reminder_engine.core.domain.exceptions import AppointmentNotFound

from ...application.ports.appointment_port import AppointmentWindow
from ...domain.entities.appointment import Appointment, StatusTransition
from ...domain.entities.channel import Channel, SendResult
from ...domain.entities.message_log import MessageLogEntry
from ...domain.entities.patient import Patient
from ...domain.entities.reschedule_alert import RescheduleAlert
from ...domain.value_objects.message import MessageDirection, MessageStatus
from ...domain.value_objects.phone import normalize_phone

logger = logging.getLogger(__name__)


class InMemoryAppointmentStore:
    def __init__(self, appointments: list[Appointment] | None = None):
        self._appointments: dict[str, Appointment] = {}
        for appointment in appointments or []:
            self.add(appointment)

    def add(self, appointment: Appointment) -> Appointment:
        self._appointments[appointment.id] = copy.copy(appointment)
        return appointment

    async def get(self, appointment_id: str) -> Appointment | None:
        appointment = self._appointments.get(appointment_id)
        return copy.copy(appointment) if appointment else None

    async def find_due(self, window: AppointmentWindow, days_before: int) -> list[Appointment]:
        due = [
            a for a in self._appointments.values() if not a.is_terminal() and window.contains(a.scheduled_at)
        ]
        return [copy.copy(a) for a in sorted(due, key=lambda a: a.scheduled_at)]

    async def find_active_for_patient(self, patient_id: str) -> list[Appointment]:
        active = [a for a in self._appointments.values() if a.patient_id == patient_id and not a.is_terminal()]
        return [copy.copy(a) for a in sorted(active, key=lambda a: a.scheduled_at)]

    async def transition(
        self,
        appointment_id: str,
        transition: StatusTransition,
        *,
        new_scheduled_at: datetime | None = None,
    ) -> Appointment:
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFound(appointment_id)
        appointment.apply(transition, new_scheduled_at)
        return copy.copy(appointment)

    async def increment_reminder_attempts(self, appointment_id: str, at: datetime) -> Appointment:
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFound(appointment_id)
        appointment.record_reminder(at)
        return copy.copy(appointment)


class InMemoryPatientStore:
    def __init__(self, patients: list[Patient] | None = None, default_country_code: str = "595"):
        self._country_code = default_country_code
        self._patients: dict[str, Patient] = {p.id: p for p in patients or []}

    def add(self, patient: Patient) -> Patient:
        self._patients[patient.id] = patient
        return patient

    async def get(self, patient_id: str) -> Patient | None:
        return self._patients.get(patient_id)

    async def find_by_phone(self, phone: str) -> Patient | None:
        target = normalize_phone(phone, self._country_code)
        for patient in self._patients.values():
            if normalize_phone(patient.phone, self._country_code) == target:
                return patient
        return None


class InMemoryChannelStore:
    """Channel registry. Returns the stored instances, which the governor then owns."""

    def __init__(self, channels: list[Channel] | None = None):
        self._channels: dict[str, Channel] = {c.id: c for c in channels or []}
        self.sends: dict[str, list[SendResult]] = {}

    def add(self, channel: Channel) -> Channel:
        self._channels[channel.id] = channel
        return channel

    async def list_connected(self, purpose: str | None = None) -> list[Channel]:
        return [c for c in self._channels.values() if c.is_connected and c.serves(purpose)]

    async def list_all(self) -> list[Channel]:
        return list(self._channels.values())

    async def get(self, channel_id: str) -> Channel | None:
        return self._channels.get(channel_id)

    async def record_send(self, channel_id: str, result: SendResult) -> None:
        self.sends.setdefault(channel_id, []).append(result)

    async def save(self, channel: Channel) -> None:
        self._channels[channel.id] = channel


class InMemoryMessageLog:
    def __init__(self):
        self._entries: dict[str, MessageLogEntry] = {}

    async def append(self, entry: MessageLogEntry) -> MessageLogEntry:
        self._entries[entry.id] = entry
        return entry

    async def update_status(
        self,
        entry_id: str,
        status: MessageStatus,
        *,
        external_message_id: str | None = None,
        error: str | None = None,
    ) -> MessageLogEntry | None:
        entry = self._entries.get(entry_id)
        if entry is None:
            logger.warning(f"Message log entry {entry_id} not found")
            return None
        entry.status = status
        if external_message_id is not None:
            entry.external_message_id = external_message_id
        if error is not None:
            entry.error = error
        entry.updated_at = datetime.now(UTC)
        return entry

    async def find_by_external_id(self, external_message_id: str) -> MessageLogEntry | None:
        for entry in self._entries.values():
            if entry.external_message_id == external_message_id and entry.direction == MessageDirection.OUTBOUND:
                return entry
        return None

    async def list_recent(self, limit: int = 50, appointment_id: str | None = None) -> list[MessageLogEntry]:
        entries = [
            e
            for e in reversed(list(self._entries.values()))
            if appointment_id is None or e.appointment_id == appointment_id
        ]
        return entries[:limit]

    async def count_by_status(self, since: datetime | None = None) -> dict[str, int]:
        counts: dict[str, int] = {}
        for entry in self._entries.values():
            if entry.direction != MessageDirection.OUTBOUND:
                continue
            if since is not None and entry.created_at < since:
                continue
            counts[entry.status.value] = counts.get(entry.status.value, 0) + 1
        return counts

    @property
    def entries(self) -> list[MessageLogEntry]:
        return list(self._entries.values())


class InMemoryRescheduleAlertRepository:
    def __init__(self):
        self._alerts: dict[str, RescheduleAlert] = {}

    async def add(self, alert: RescheduleAlert) -> RescheduleAlert:
        self._alerts[alert.id] = alert
        return alert

    async def get(self, alert_id: str) -> RescheduleAlert | None:
        return self._alerts.get(alert_id)

    async def save(self, alert: RescheduleAlert) -> RescheduleAlert:
        self._alerts[alert.id] = alert
        return alert

    async def find_open_for_appointment(self, appointment_id: str) -> RescheduleAlert | None:
        for alert in self._alerts.values():
            if alert.appointment_id == appointment_id and alert.is_open:
                return alert
        return None

    async def list_alerts(
        self,
        *,
        is_read: bool | None = None,
        is_resolved: bool | None = None,
        limit: int = 100,
    ) -> list[RescheduleAlert]:
        alerts = [
            a
            for a in reversed(list(self._alerts.values()))
            if (is_read is None or a.is_read == is_read) and (is_resolved is None or a.is_resolved == is_resolved)
        ]
        return alerts[:limit]


class InMemoryTransitionAuditLog:
    def __init__(self):
        self._transitions: list[StatusTransition] = []

    async def append(self, transition: StatusTransition) -> None:
        self._transitions.append(transition)

    async def list_for(self, appointment_id: str) -> list[StatusTransition]:
        return [t for t in self._transitions if t.appointment_id == appointment_id]


class InMemoryReminderLedger:
    """Process-local dedup ledger. Claims are lost on restart."""

    def __init__(self):
        self._claimed: set[str] = set()

    async def claim(self, key: str) -> bool:
        if key in self._claimed:
            return False
        self._claimed.add(key)
        return True

    async def release(self, key: str) -> None:
        self._claimed.discard(key)

    async def is_claimed(self, key: str) -> bool:
        return key in self._claimed
