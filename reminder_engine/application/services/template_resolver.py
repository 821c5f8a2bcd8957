# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Cadence table lookup (days before, hour, confirmed) -> message.
# ============================================================================
"""Message Template Resolver.

Pure lookup over the canonical cadence table. Combinations that are not in the
table resolve to ``None``, which callers treat as "no send".

Cadence:
    - 2 days before: 10h, 15h, 19h (same family for every patient)
    - 1 day before: 7h, 8h, 10h, 12h, 14h, 16h, 18h, escalating, only if not
      confirmed; confirmed patients get one reinforcement at 10h
    - same day: 7h for everyone (motivational once confirmed) and
      "2 hours before" only if not confirmed
"""

from typing import Any

from ...domain.entities.reminder_job import TWO_HOURS_BEFORE, HourBucket
from . import reminder_templates as templates
from .reminder_templates import ReminderTemplate

UNCONFIRMED_CADENCE: dict[tuple[int, HourBucket], ReminderTemplate] = {
    (2, 10): templates.REMINDER_2DAYS_10H,
    (2, 15): templates.REMINDER_2DAYS_15H,
    (2, 19): templates.REMINDER_2DAYS_19H,
    (1, 7): templates.REMINDER_1DAY_07H,
    (1, 8): templates.REMINDER_1DAY_08H,
    (1, 10): templates.REMINDER_1DAY_10H,
    (1, 12): templates.REMINDER_1DAY_12H,
    (1, 14): templates.REMINDER_1DAY_14H,
    (1, 16): templates.REMINDER_1DAY_16H,
    (1, 18): templates.REMINDER_1DAY_18H,
    (0, 7): templates.REMINDER_SAME_DAY_07H,
    (0, TWO_HOURS_BEFORE): templates.REMINDER_SAME_DAY_2H_BEFORE,
}

CONFIRMED_CADENCE: dict[tuple[int, HourBucket], ReminderTemplate] = {
    (2, 10): templates.REMINDER_2DAYS_10H,
    (2, 15): templates.REMINDER_2DAYS_15H,
    (2, 19): templates.REMINDER_2DAYS_19H,
    (1, 10): templates.REMINDER_CONFIRMED_REINFORCEMENT,
    (0, 7): templates.REMINDER_CONFIRMED_SAME_DAY,
}

# Slots where a confirmed appointment may still receive its one reinforcement
REINFORCEMENT_SLOTS: frozenset[tuple[int, HourBucket]] = frozenset({(1, 10), (0, 7)})


def greeting_for(hour: int) -> str:
    """Saludo según la hora local."""
    if 5 <= hour < 12:
        return "Buenos días"
    if 12 <= hour < 19:
        return "Buenas tardes"
    return "Buenas noches"


class MessageTemplateResolver:
    """Resolve cadence slots to reminder texts."""

    def lookup_template(
        self, days_before: int, hour_bucket: HourBucket, confirmed: bool
    ) -> ReminderTemplate | None:
        table = CONFIRMED_CADENCE if confirmed else UNCONFIRMED_CADENCE
        return table.get((days_before, hour_bucket))

    def resolve_message(
        self,
        days_before: int,
        hour_bucket: HourBucket,
        confirmed: bool,
        variables: dict[str, Any],
    ) -> str | None:
        """Render the message for a cadence slot.

        Args:
            days_before: 2, 1 or 0.
            hour_bucket: Trigger hour or TWO_HOURS_BEFORE.
            confirmed: Whether the appointment is confirmed.
            variables: patient_name, appointment_date, appointment_time,
                clinic_name and optionally greeting.

        Returns:
            Message text, or None when the slot has no template.

        Raises:
            MissingVariable: A placeholder has no value.
        """
        template = self.lookup_template(days_before, hour_bucket, confirmed)
        if template is None:
            return None

        values = dict(variables)
        if values.get("greeting") is None and isinstance(hour_bucket, int):
            values["greeting"] = greeting_for(hour_bucket)
        return template.render(values)

    def is_reinforcement_slot(self, days_before: int, hour_bucket: HourBucket) -> bool:
        return (days_before, hour_bucket) in REINFORCEMENT_SLOTS

    def cadence_slots(self) -> list[tuple[int, int]]:
        """Fixed wall-clock trigger points (the sliding 2h check is separate)."""
        slots = {
            key
            for key in (*UNCONFIRMED_CADENCE, *CONFIRMED_CADENCE)
            if isinstance(key[1], int)
        }
        return sorted(slots, key=lambda slot: (-slot[0], slot[1]))
