# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Reminder Engine)
# Description: Executes one reminder cadence trigger across connected channels.
# ============================================================================
"""Reminder Dispatcher.

Runs one cadence trigger: finds the appointments due for the slot, screens them,
and sends through channel-bound workers. Sends are sequential within a channel
(the governor paces them) and parallel across channels. A failure for one
appointment never aborts the rest of the batch.
"""

import asyncio
import logging
import time
from collections import Counter, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from datetime import time as dt_time
from typing import Any

from reminder_engine.core.domain.exceptions import (
    CutoffReached,
    InvalidTransition,
    MissingVariable,
    NoChannelAvailable,
    RateLimited,
    TransportError,
)

from ...application.ports.appointment_port import AppointmentStore, AppointmentWindow
from ...application.ports.channel_port import ChannelStore
from ...application.ports.ledger_port import ReminderLedger
from ...application.ports.log_port import MessageLogRepository
from ...application.ports.patient_port import PatientStore
from ...application.services.channel_governor import ChannelGovernor
from ...application.services.reminder_templates import ReminderTemplate
from ...application.services.state_machine import AppointmentStateMachine
from ...application.services.template_resolver import MessageTemplateResolver
from ...domain.entities.appointment import Appointment
from ...domain.entities.channel import Channel
from ...domain.entities.message_log import MessageLogEntry
from ...domain.entities.reminder_job import TWO_HOURS_BEFORE, HourBucket, ReminderJob
from ...domain.value_objects.appointment_status import AppointmentStatus
from ...domain.value_objects.channel_state import ChannelPurpose
from ...domain.value_objects.message import MessageKind, MessageStatus

logger = logging.getLogger(__name__)


def trigger_name(days_before: int, hour_bucket: HourBucket) -> str:
    return f"{days_before}d_{hour_bucket}"


@dataclass
class TriggerRunReport:
    """Outcome of one trigger run (kept in the run history)."""

    trigger: str
    days_before: int
    hour_bucket: HourBucket
    started_at: datetime
    finished_at: datetime | None = None
    window_start: datetime | None = None
    window_end: datetime | None = None
    candidates: int = 0
    sent: int = 0
    failed: int = 0
    rate_limited: int = 0
    no_channel: int = 0
    cutoff_reached: bool = False
    skipped: Counter = field(default_factory=Counter)

    def skip(self, reason: str) -> None:
        self.skipped[reason] += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "days_before": self.days_before,
            "hour_bucket": self.hour_bucket,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "window_start": self.window_start.isoformat() if self.window_start else None,
            "window_end": self.window_end.isoformat() if self.window_end else None,
            "candidates": self.candidates,
            "sent": self.sent,
            "failed": self.failed,
            "rate_limited": self.rate_limited,
            "no_channel": self.no_channel,
            "cutoff_reached": self.cutoff_reached,
            "skipped": dict(self.skipped),
        }


@dataclass
class _Dispatch:
    job: ReminderJob
    appointment: Appointment
    template: ReminderTemplate


class ReminderDispatcher:
    """Executes cadence triggers against the appointment store."""

    def __init__(
        self,
        appointment_store: AppointmentStore,
        patient_store: PatientStore,
        channel_store: ChannelStore,
        governor: ChannelGovernor,
        state_machine: AppointmentStateMachine,
        message_log: MessageLogRepository,
        ledger: ReminderLedger,
        resolver: MessageTemplateResolver | None = None,
        *,
        tz,
        clinic_name: str,
        cutoff_hour: int = 19,
        max_attempts: int = 5,
        history_size: int = 50,
        clock: Callable[[], datetime] | None = None,
        monotonic: Callable[[], float] = time.monotonic,
        purpose: ChannelPurpose = ChannelPurpose.REMINDERS,
    ):
        """Initialize dispatcher.

        Args:
            tz: pytz time zone of the clinic.
            clinic_name: Value for the {clinic_name} placeholder.
            cutoff_hour: Local hour from which nothing is sent.
            max_attempts: Reminder ceiling per appointment.
            history_size: Runs kept for dashboards.
            clock: Returns the current aware datetime (tests inject one).
            monotonic: Elapsed-time source used to age the trigger time during
                a run (the governor's clock in tests).
        """
        self._appointments = appointment_store
        self._patients = patient_store
        self._channels = channel_store
        self._governor = governor
        self._state_machine = state_machine
        self._message_log = message_log
        self._ledger = ledger
        self._resolver = resolver or MessageTemplateResolver()
        self.tz = tz
        self.clinic_name = clinic_name
        self.cutoff_hour = cutoff_hour
        self.max_attempts = max_attempts
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._monotonic = monotonic
        self._purpose = purpose
        self._history: deque[TriggerRunReport] = deque(maxlen=history_size)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_trigger(
        self, days_before: int, hour_bucket: HourBucket, now: datetime | None = None
    ) -> TriggerRunReport:
        """Run one cadence trigger.

        Args:
            days_before: 2, 1 or 0.
            hour_bucket: Trigger hour, or TWO_HOURS_BEFORE for the hourly check.
            now: Trigger time (defaults to the clock).

        Returns:
            TriggerRunReport with per-outcome counters.
        """
        local_now = (now or self._clock()).astimezone(self.tz)
        report = TriggerRunReport(
            trigger=trigger_name(days_before, hour_bucket),
            days_before=days_before,
            hour_bucket=hour_bucket,
            started_at=local_now,
        )
        started = self._monotonic()

        def current_time() -> datetime:
            return local_now + timedelta(seconds=self._monotonic() - started)

        try:
            await self._run(report, days_before, hour_bucket, local_now, current_time)
        finally:
            report.finished_at = current_time()
            self._history.append(report)
            logger.info(
                f"Reminder trigger {report.trigger}: candidates={report.candidates} sent={report.sent} "
                f"failed={report.failed} rate_limited={report.rate_limited} no_channel={report.no_channel} "
                f"skipped={dict(report.skipped)}"
            )
        return report

    def window_for(self, days_before: int, hour_bucket: HourBucket, local_now: datetime) -> AppointmentWindow:
        """Appointment start-time window targeted by a trigger."""
        if hour_bucket == TWO_HOURS_BEFORE:
            start = local_now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=2)
            start = self.tz.normalize(start)
            return AppointmentWindow(start=start, end=self.tz.normalize(start + timedelta(hours=1)))

        target = local_now.date() + timedelta(days=days_before)
        return AppointmentWindow(
            start=self.tz.localize(datetime.combine(target, dt_time.min)),
            end=self.tz.localize(datetime.combine(target + timedelta(days=1), dt_time.min)),
        )

    def cutoff_reached(self, hour_bucket: HourBucket, moment: datetime) -> bool:
        """No send at or after the cutoff hour, whatever the slot."""
        if isinstance(hour_bucket, int) and hour_bucket >= self.cutoff_hour:
            return True
        return moment.astimezone(self.tz).hour >= self.cutoff_hour

    def history(self, limit: int | None = None) -> list[TriggerRunReport]:
        """Most recent runs first."""
        runs = list(reversed(self._history))
        return runs[:limit] if limit else runs

    def statistics(self) -> dict[str, Any]:
        skipped: Counter = Counter()
        totals = {"runs": len(self._history), "sent": 0, "failed": 0, "rate_limited": 0, "no_channel": 0}
        for report in self._history:
            totals["sent"] += report.sent
            totals["failed"] += report.failed
            totals["rate_limited"] += report.rate_limited
            totals["no_channel"] += report.no_channel
            skipped.update(report.skipped)
        last = self._history[-1] if self._history else None
        return {**totals, "skipped": dict(skipped), "last_run": last.to_dict() if last else None}

    # ------------------------------------------------------------------
    # Trigger execution
    # ------------------------------------------------------------------

    async def _run(
        self,
        report: TriggerRunReport,
        days_before: int,
        hour_bucket: HourBucket,
        local_now: datetime,
        current_time: Callable[[], datetime],
    ) -> None:
        if self.cutoff_reached(hour_bucket, local_now):
            report.cutoff_reached = True
            logger.info(f"Reminder trigger {report.trigger} skipped: cutoff hour {self.cutoff_hour}:00 reached")
            return

        window = self.window_for(days_before, hour_bucket, local_now)
        report.window_start, report.window_end = window.start, window.end

        appointments = await self._appointments.find_due(window, days_before)
        report.candidates = len(appointments)

        dispatches = []
        for appointment in appointments:
            screened = self._screen(appointment, days_before, hour_bucket, local_now)
            if isinstance(screened, str):
                report.skip(screened)
            else:
                dispatches.append(screened)

        if not dispatches:
            return

        try:
            connected = await self._channels.list_connected(self._purpose.value)
            channels = self._governor.sendable_channels(connected, self._purpose.value)
        except NoChannelAvailable as e:
            report.no_channel += len(dispatches)
            logger.warning(f"Reminder trigger {report.trigger}: {e.message}, {len(dispatches)} reminder(s) not sent")
            for dispatch in dispatches:
                await self._log_unsent(dispatch, None, "", e.message)
            return
        except RateLimited as e:
            report.rate_limited += len(dispatches)
            logger.warning(f"Reminder trigger {report.trigger}: {e.message}, {len(dispatches)} reminder(s) deferred")
            return

        queue: asyncio.Queue[_Dispatch] = asyncio.Queue()
        for dispatch in dispatches:
            queue.put_nowait(dispatch)

        await asyncio.gather(*(self._channel_worker(channel, queue, report, current_time) for channel in channels))

        while not queue.empty():
            queue.get_nowait()
            if report.cutoff_reached:
                report.skip("cutoff")
            else:
                report.rate_limited += 1
        if report.rate_limited:
            logger.warning(f"Reminder trigger {report.trigger}: {report.rate_limited} reminder(s) deferred by limits")

    def _screen(
        self, appointment: Appointment, days_before: int, hour_bucket: HourBucket, local_now: datetime
    ) -> _Dispatch | str:
        """Build the dispatch for an appointment, or return the skip reason."""
        status = appointment.status
        if not status.allows_reminders():
            return "terminal" if status.is_terminal() else status.value

        confirmed = status == AppointmentStatus.CONFIRMED
        reinforcement = confirmed and self._resolver.is_reinforcement_slot(days_before, hour_bucket)
        if confirmed and days_before in (0, 1) and not reinforcement:
            return "confirmed"

        template = self._resolver.lookup_template(days_before, hour_bucket, confirmed)
        if template is None:
            return "no_template"

        if not reinforcement and appointment.reminder_attempts >= self.max_attempts:
            logger.info(
                f"Appointment {appointment.id} reached the reminder ceiling "
                f"({appointment.reminder_attempts}/{self.max_attempts}), not sending {days_before}d_{hour_bucket}"
            )
            return "max_attempts"

        job = ReminderJob(
            appointment_id=appointment.id,
            appointment_date=appointment.local_start(self.tz).date(),
            trigger_time=local_now,
            days_before=days_before,
            hour_bucket=hour_bucket,
            reinforcement=reinforcement,
        )
        return _Dispatch(job=job, appointment=appointment, template=template)

    async def _channel_worker(
        self,
        channel: Channel,
        queue: "asyncio.Queue[_Dispatch]",
        report: TriggerRunReport,
        current_time: Callable[[], datetime],
    ) -> None:
        while True:
            try:
                dispatch = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            if not self._governor.can_send(channel.id):
                queue.put_nowait(dispatch)
                logger.info(f"Channel {channel.id} stopped taking reminders (limit or pause)")
                return

            try:
                await self._deliver(dispatch, channel, report, current_time)
            except CutoffReached:
                report.cutoff_reached = True
                report.skip("cutoff")
                logger.info(f"Channel {channel.id} stopped at cutoff hour {self.cutoff_hour}:00")
                return
            except RateLimited:
                queue.put_nowait(dispatch)
                return
            except Exception as e:
                report.failed += 1
                logger.error(f"Error sending reminder for appointment {dispatch.job.appointment_id}: {e}", exc_info=True)

    async def _deliver(
        self,
        dispatch: _Dispatch,
        channel: Channel,
        report: TriggerRunReport,
        current_time: Callable[[], datetime],
    ) -> None:
        job = dispatch.job
        if self.cutoff_reached(job.hour_bucket, current_time()):
            report.cutoff_reached = True
            report.skip("cutoff")
            return

        # Status may have changed since find_due (patient replied during pacing)
        appointment = await self._appointments.get(job.appointment_id)
        if appointment is None:
            report.skip("missing")
            return
        screened = self._screen(appointment, job.days_before, job.hour_bucket, job.trigger_time)
        if isinstance(screened, str):
            report.skip(screened)
            return
        job, template = screened.job, screened.template

        patient = await self._patients.get(appointment.patient_id)
        if patient is None or not patient.phone:
            report.skip("no_phone")
            logger.warning(f"Appointment {appointment.id}: patient {appointment.patient_id} has no phone")
            return

        try:
            text = self._resolver.resolve_message(
                job.days_before,
                job.hour_bucket,
                appointment.is_confirmed(),
                self._variables(appointment, patient.first_name),
            )
        except MissingVariable as e:
            report.failed += 1
            logger.error(f"Appointment {appointment.id}: {e.message}")
            await self._log_unsent(_Dispatch(job, appointment, template), channel.id, "", e.message, patient.phone)
            return
        if text is None:
            report.skip("no_template")
            return

        if not await self._ledger.claim(job.dedup_key):
            report.skip("duplicate")
            return

        kind = MessageKind.REINFORCEMENT if job.reinforcement else MessageKind.REMINDER
        entry = await self._message_log.append(
            MessageLogEntry.outbound(
                kind,
                text,
                phone=patient.phone,
                channel_id=channel.id,
                appointment_id=appointment.id,
                patient_id=patient.id,
                template_name=template.name,
            )
        )

        try:
            receipt = await self._governor.send(
                channel.id,
                patient.phone,
                text,
                pacing=self._governor.config.reminder_pacing,
                deadline_passed=lambda: self.cutoff_reached(job.hour_bucket, current_time()),
            )
        except RateLimited as e:
            await self._ledger.release(job.dedup_key)
            await self._message_log.update_status(entry.id, MessageStatus.FAILED, error=e.message)
            raise
        except TransportError as e:
            report.failed += 1
            await self._message_log.update_status(entry.id, MessageStatus.FAILED, error=e.message)
            await self._appointments.increment_reminder_attempts(appointment.id, current_time())
            logger.error(f"Reminder {job.dedup_key} failed on channel {channel.id}: {e.message}")
            return

        await self._message_log.update_status(
            entry.id, MessageStatus.SENT, external_message_id=receipt.external_message_id
        )
        await self._appointments.increment_reminder_attempts(appointment.id, receipt.sent_at)
        report.sent += 1

        if job.days_before in (0, 1) and appointment.status == AppointmentStatus.SCHEDULED:
            try:
                await self._state_machine.mark_not_confirmed(appointment.id, reason=f"reminder {template.name}")
            except InvalidTransition as e:
                logger.info(f"Appointment {appointment.id} not marked unconfirmed: {e.message}")

    def _variables(self, appointment: Appointment, patient_name: str) -> dict[str, Any]:
        return {
            "patient_name": patient_name,
            "appointment_date": appointment.formatted_date(self.tz),
            "appointment_time": appointment.formatted_time(self.tz),
            "clinic_name": self.clinic_name,
        }

    async def _log_unsent(
        self,
        dispatch: _Dispatch,
        channel_id: str | None,
        content: str,
        error: str,
        phone: str | None = None,
    ) -> None:
        kind = MessageKind.REINFORCEMENT if dispatch.job.reinforcement else MessageKind.REMINDER
        await self._message_log.append(
            MessageLogEntry.outbound(
                kind,
                content,
                status=MessageStatus.FAILED,
                phone=phone,
                channel_id=channel_id,
                appointment_id=dispatch.appointment.id,
                patient_id=dispatch.appointment.patient_id,
                template_name=dispatch.template.name,
                error=error,
            )
        )
