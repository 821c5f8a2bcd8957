"""Reminder job value object produced by a scheduler tick."""

from dataclasses import dataclass
from datetime import date, datetime

# Hour bucket of the sliding "2 hours before the appointment" check
TWO_HOURS_BEFORE = "2h_before"

HourBucket = int | str


@dataclass(frozen=True)
class ReminderJob:
    appointment_id: str
    appointment_date: date
    trigger_time: datetime
    days_before: int
    hour_bucket: HourBucket
    reinforcement: bool = False

    @property
    def dedup_key(self) -> str:
        """Idempotency key for the ledger.

        The appointment date is part of the key so a rescheduled appointment runs
        its cadence again. A confirmed reinforcement is sent once per appointment
        date, whichever reinforcement slot comes first.
        """
        if self.reinforcement:
            return f"{self.appointment_id}:{self.appointment_date.isoformat()}:reinforcement"
        return f"{self.appointment_id}:{self.appointment_date.isoformat()}:{self.days_before}:{self.hour_bucket}"
