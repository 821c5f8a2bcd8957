"""Reminder Cadence Scheduler.

APScheduler-based async scheduler driving the reminder cadence in the clinic's
time zone (America/Asuncion by default):

- 2 days before: 10:00, 15:00, 19:00
- 1 day before: 07:00, 08:00, 10:00, 12:00, 14:00, 16:00, 18:00
- same day: 07:00, plus an hourly check for appointments starting in 2 hours
- every few minutes: secretary alert for unconfirmed appointments about to start
- 00:00: daily channel counter reset

Slots at or after the cutoff hour are not registered; the dispatcher enforces the
cutoff again for manual triggers.
"""

import asyncio
import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-not-found]
from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-not-found]
from pytz import timezone

from ...application.services.channel_governor import ChannelGovernor
from ...application.services.template_resolver import MessageTemplateResolver
from ...application.use_cases.no_confirmation_alerts import NoConfirmationAlertUseCase
from ...domain.entities.reminder_job import TWO_HOURS_BEFORE, HourBucket
from .reminder_dispatcher import ReminderDispatcher, TriggerRunReport, trigger_name

logger = logging.getLogger(__name__)


class ReminderCadenceScheduler:
    """Scheduler de recordatorios de turnos.

    Constructed once at process start and injected where needed; it owns its
    APScheduler instance and nothing else keeps timers.
    """

    def __init__(
        self,
        dispatcher: ReminderDispatcher,
        governor: ChannelGovernor,
        resolver: MessageTemplateResolver | None = None,
        timezone_name: str = "America/Asuncion",
        cutoff_hour: int = 19,
        enabled: bool = True,
        no_confirmation: NoConfirmationAlertUseCase | None = None,
        no_confirmation_interval_minutes: int = 10,
    ):
        """Initialize scheduler.

        Args:
            dispatcher: Executes each trigger.
            governor: Channel governor whose counters reset at midnight.
            resolver: Source of the cadence slots.
            timezone_name: Timezone for scheduling jobs.
            cutoff_hour: Local hour from which no slot is registered.
            enabled: Whether scheduler is enabled.
            no_confirmation: Check for unconfirmed appointments about to start
                (no job when None).
            no_confirmation_interval_minutes: Minutes between those checks.
        """
        self.dispatcher = dispatcher
        self.governor = governor
        self.resolver = resolver or MessageTemplateResolver()
        self.tz = timezone(timezone_name)
        self.cutoff_hour = cutoff_hour
        self.enabled = enabled
        self.no_confirmation = no_confirmation
        self.no_confirmation_interval_minutes = no_confirmation_interval_minutes

        self._scheduler: AsyncIOScheduler | None = None
        self._is_running = False
        self._running_triggers: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._is_running

    def active_slots(self) -> list[tuple[int, int]]:
        """Cadence slots that fire before the cutoff hour."""
        return [(days, hour) for days, hour in self.resolver.cadence_slots() if hour < self.cutoff_hour]

    async def start(self) -> None:
        """Start the scheduler."""
        if not self.enabled:
            logger.info("ReminderCadenceScheduler is disabled, skipping start")
            return

        if self._is_running:
            logger.warning("ReminderCadenceScheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.tz)
        self._scheduler = scheduler

        for days_before, hour in self.active_slots():
            scheduler.add_job(
                self._run_trigger_job,
                CronTrigger(hour=hour, minute=0, timezone=self.tz),
                id=f"reminder_{trigger_name(days_before, hour)}",
                replace_existing=True,
                name=f"Reminder {days_before}d before at {hour:02d}:00",
                kwargs={"days_before": days_before, "hour_bucket": hour},
                misfire_grace_time=300,
                coalesce=True,
            )

        # Hourly check for appointments starting in 2 hours, from the first slot until the cutoff
        first_hour = min(hour for _, hour in self.resolver.cadence_slots())
        scheduler.add_job(
            self._run_trigger_job,
            CronTrigger(hour=f"{first_hour}-{max(first_hour, self.cutoff_hour - 1)}", minute=0, timezone=self.tz),
            id=f"reminder_{trigger_name(0, TWO_HOURS_BEFORE)}",
            replace_existing=True,
            name="Reminder 2 hours before appointment",
            kwargs={"days_before": 0, "hour_bucket": TWO_HOURS_BEFORE},
            misfire_grace_time=300,
            coalesce=True,
        )

        scheduler.add_job(
            self._reset_daily_counters,
            CronTrigger(hour=0, minute=0, timezone=self.tz),
            id="channel_daily_reset",
            replace_existing=True,
            name="Channel daily counter reset",
        )

        if self.no_confirmation is not None:
            scheduler.add_job(
                self._run_no_confirmation_check,
                CronTrigger(minute=f"*/{self.no_confirmation_interval_minutes}", timezone=self.tz),
                id="no_confirmation_check",
                replace_existing=True,
                name="Unconfirmed appointment alert",
                misfire_grace_time=60,
                coalesce=True,
                max_instances=1,
            )

        scheduler.start()
        self._is_running = True
        skipped = [slot for slot in self.resolver.cadence_slots() if slot not in self.active_slots()]
        logger.info(
            f"ReminderCadenceScheduler started with timezone {self.tz} "
            f"({len(self.active_slots())} cadence slots, cutoff={self.cutoff_hour}:00, "
            f"suppressed={skipped})"
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._is_running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            for task in list(self._running_triggers):
                task.cancel()
            logger.info("ReminderCadenceScheduler stopped")

    async def trigger_now(self, days_before: int, hour_bucket: HourBucket) -> TriggerRunReport:
        """Run a cadence trigger immediately (manual run from the dashboard)."""
        logger.info(f"Manual reminder trigger {trigger_name(days_before, hour_bucket)}")
        return await self.dispatcher.run_trigger(days_before, hour_bucket)

    async def _run_trigger_job(self, days_before: int, hour_bucket: HourBucket) -> None:
        """APScheduler entry point; errors are logged, never propagated."""
        task = asyncio.current_task()
        if task is not None:
            self._running_triggers.add(task)
        try:
            await self.dispatcher.run_trigger(days_before, hour_bucket)
        except Exception as e:
            logger.error(f"Error running reminder trigger {trigger_name(days_before, hour_bucket)}: {e}", exc_info=True)
        finally:
            if task is not None:
                self._running_triggers.discard(task)

    async def _run_no_confirmation_check(self) -> None:
        if self.no_confirmation is None:
            return
        try:
            await self.no_confirmation.execute()
        except Exception as e:
            logger.error(f"Error running no-confirmation check: {e}", exc_info=True)

    async def _reset_daily_counters(self) -> None:
        try:
            await self.governor.reset_daily_counters()
        except Exception as e:
            logger.error(f"Error resetting channel counters: {e}", exc_info=True)

    def get_jobs_info(self) -> list[dict[str, Any]]:
        """Get information about scheduled jobs."""
        if not self._scheduler:
            return []

        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run": next_run.isoformat() if next_run else None,
                    "trigger": str(job.trigger),
                }
            )
        return jobs
