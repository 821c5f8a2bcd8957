# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Manual bulk send paced with the slow anti-block profile.
# ============================================================================
"""Manual Bulk Send.

Secretary-initiated message to a list of patients (e.g. clinic closed on a
holiday). Uses the 30-90s pacing profile on one channel and honors the cutoff
hour. One failed recipient never stops the rest.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from reminder_engine.core.domain.exceptions import CutoffReached, RateLimited, ReminderEngineError

from ...domain.entities.message_log import MessageLogEntry
from ...domain.value_objects.channel_state import ChannelPurpose
from ...domain.value_objects.message import MessageKind, MessageStatus
from ..ports.channel_port import ChannelStore
from ..ports.log_port import MessageLogRepository
from ..ports.patient_port import PatientStore
from ..services.channel_governor import ChannelGovernor
from ..services.reminder_templates import ReminderTemplate

logger = logging.getLogger(__name__)


@dataclass
class BulkSendReport:
    total: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    stopped_reason: str | None = None
    errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "stopped_reason": self.stopped_reason,
            "errors": self.errors,
        }


class BulkSendUseCase:
    def __init__(
        self,
        patients: PatientStore,
        channel_store: ChannelStore,
        governor: ChannelGovernor,
        message_log: MessageLogRepository,
        *,
        tz,
        cutoff_hour: int,
        clinic_name: str,
        clock: Callable[[], datetime] | None = None,
    ):
        self._patients = patients
        self._channel_store = channel_store
        self._governor = governor
        self._message_log = message_log
        self._tz = tz
        self._cutoff_hour = cutoff_hour
        self._clinic_name = clinic_name
        self._clock = clock or (lambda: datetime.now(self._tz))

    async def execute(self, patient_ids: list[str], text: str, channel_id: str | None = None) -> BulkSendReport:
        """Send ``text`` to each patient.

        ``text`` may use {patient_name} and {clinic_name}.
        """
        template = ReminderTemplate(name="manual_bulk", body=text)
        report = BulkSendReport(total=len(patient_ids))

        if channel_id is None:
            candidates = await self._channel_store.list_connected(ChannelPurpose.REMINDERS.value)
            channel_id = self._governor.select_channel(candidates, ChannelPurpose.REMINDERS.value).id

        for patient_id in patient_ids:
            if self._past_cutoff():
                self._stop_at_cutoff(report)
                break

            patient = await self._patients.get(patient_id)
            if patient is None or not patient.phone:
                report.skipped += 1
                continue

            entry = None
            try:
                body = template.render({"patient_name": patient.first_name, "clinic_name": self._clinic_name})
                entry = await self._message_log.append(
                    MessageLogEntry.outbound(
                        MessageKind.BULK,
                        body,
                        phone=patient.phone,
                        channel_id=channel_id,
                        patient_id=patient.id,
                        template_name=template.name,
                    )
                )
                receipt = await self._governor.send(
                    channel_id,
                    patient.phone,
                    body,
                    pacing=self._governor.config.bulk_pacing,
                    deadline_passed=self._past_cutoff,
                )
                await self._message_log.update_status(
                    entry.id, MessageStatus.SENT, external_message_id=receipt.external_message_id
                )
                report.sent += 1
            except CutoffReached as e:
                await self._message_log.update_status(entry.id, MessageStatus.FAILED, error=e.message)
                self._stop_at_cutoff(report)
                break
            except RateLimited as e:
                if entry is not None:
                    await self._message_log.update_status(entry.id, MessageStatus.FAILED, error=e.message)
                report.failed += 1
                report.errors[patient_id] = e.message
                report.stopped_reason = "rate_limited"
                report.skipped += report.total - report.sent - report.failed - report.skipped
                logger.warning(f"Bulk send stopped: {e.message}")
                break
            except ReminderEngineError as e:
                if entry is not None:
                    await self._message_log.update_status(entry.id, MessageStatus.FAILED, error=e.message)
                report.failed += 1
                report.errors[patient_id] = e.message
                logger.error(f"Bulk send to patient {patient_id} failed: {e.message}")

        logger.info(f"Bulk send finished: {report.to_dict()}")
        return report

    def _past_cutoff(self) -> bool:
        return self._clock().astimezone(self._tz).hour >= self._cutoff_hour

    def _stop_at_cutoff(self, report: BulkSendReport) -> None:
        report.stopped_reason = "cutoff"
        report.skipped += report.total - report.sent - report.failed - report.skipped
        logger.info(f"Bulk send stopped at cutoff hour {self._cutoff_hour}:00")
