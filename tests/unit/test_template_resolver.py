"""Unit tests for the cadence table and reminder templates."""

import pytest

from reminder_engine.application.services.reminder_templates import (
    RESCHEDULE_ACK,
    RESCHEDULE_CORPORATE_NOTICE,
    ReminderTemplate,
)
from reminder_engine.application.services.template_resolver import (
    CONFIRMED_CADENCE,
    UNCONFIRMED_CADENCE,
    MessageTemplateResolver,
    greeting_for,
)
from reminder_engine.core.domain.exceptions import MissingVariable
from reminder_engine.domain.entities.reminder_job import TWO_HOURS_BEFORE

VARIABLES = {
    "patient_name": "María",
    "appointment_date": "12/03/2026",
    "appointment_time": "09:00",
    "clinic_name": "Clínica Sonrisa",
}

ALL_BUCKETS = [*range(24), TWO_HOURS_BEFORE]


@pytest.fixture
def resolver():
    return MessageTemplateResolver()


class TestLookup:
    """Tests for the cadence lookup."""

    @pytest.mark.parametrize(
        "days_before,hour_bucket,confirmed,expected",
        [
            (2, 10, False, "reminder_2days_10h"),
            (2, 15, True, "reminder_2days_15h"),
            (2, 19, False, "reminder_2days_19h"),
            (1, 7, False, "reminder_1day_07h"),
            (1, 18, False, "reminder_1day_18h"),
            (1, 10, True, "reminder_confirmed_reinforcement"),
            (0, 7, False, "reminder_same_day_07h"),
            (0, 7, True, "reminder_confirmed_same_day"),
            (0, TWO_HOURS_BEFORE, False, "reminder_same_day_2h_before"),
        ],
    )
    def test_known_slots(self, resolver, days_before, hour_bucket, confirmed, expected):
        template = resolver.lookup_template(days_before, hour_bucket, confirmed)
        assert template is not None
        assert template.name == expected

    @pytest.mark.parametrize(
        "days_before,hour_bucket,confirmed",
        [
            (1, 8, True),
            (1, 18, True),
            (0, TWO_HOURS_BEFORE, True),
            (2, 11, False),
            (3, 10, False),
        ],
    )
    def test_missing_slots_resolve_to_none(self, resolver, days_before, hour_bucket, confirmed):
        assert resolver.lookup_template(days_before, hour_bucket, confirmed) is None
        assert resolver.resolve_message(days_before, hour_bucket, confirmed, VARIABLES) is None

    def test_every_combination_resolves_or_is_none(self, resolver):
        for days_before in (0, 1, 2):
            for hour_bucket in ALL_BUCKETS:
                for confirmed in (False, True):
                    text = resolver.resolve_message(days_before, hour_bucket, confirmed, VARIABLES)
                    in_table = (days_before, hour_bucket) in (CONFIRMED_CADENCE if confirmed else UNCONFIRMED_CADENCE)
                    assert (text is not None) == in_table
                    if text is not None:
                        assert "{" not in text

    def test_reinforcement_slots(self, resolver):
        assert resolver.is_reinforcement_slot(1, 10)
        assert resolver.is_reinforcement_slot(0, 7)
        assert not resolver.is_reinforcement_slot(1, 8)

    def test_cadence_slots_order(self, resolver):
        assert resolver.cadence_slots() == [
            (2, 10), (2, 15), (2, 19),
            (1, 7), (1, 8), (1, 10), (1, 12), (1, 14), (1, 16), (1, 18),
            (0, 7),
        ]


class TestRendering:
    """Tests for placeholder substitution."""

    def test_resolve_fills_all_placeholders(self, resolver):
        text = resolver.resolve_message(2, 10, False, VARIABLES)

        assert "María" in text
        assert "12/03/2026" in text
        assert "09:00" in text
        assert "Clínica Sonrisa" in text
        assert text.startswith("Buenos días")

    def test_greeting_follows_slot_hour(self, resolver):
        assert resolver.resolve_message(2, 15, False, VARIABLES).startswith("Buenas tardes")
        assert resolver.resolve_message(2, 19, False, VARIABLES).startswith("Buenas noches")

    def test_explicit_greeting_wins(self, resolver):
        text = resolver.resolve_message(1, 7, False, {**VARIABLES, "greeting": "Hola"})
        assert text.startswith("Hola")

    def test_missing_variable_raises(self, resolver):
        variables = {k: v for k, v in VARIABLES.items() if k != "appointment_time"}
        with pytest.raises(MissingVariable) as exc_info:
            resolver.resolve_message(1, 7, False, variables)
        assert exc_info.value.variable == "appointment_time"
        assert exc_info.value.template_name == "reminder_1day_07h"

    def test_empty_value_counts_as_missing(self):
        template = ReminderTemplate(name="t", body="Hola {patient_name}")
        with pytest.raises(MissingVariable):
            template.render({"patient_name": ""})

    def test_placeholders(self):
        assert RESCHEDULE_ACK.placeholders == ("patient_name",)
        assert "whatsapp_link" in RESCHEDULE_CORPORATE_NOTICE.placeholders


@pytest.mark.parametrize(
    "hour,expected",
    [
        (5, "Buenos días"),
        (11, "Buenos días"),
        (12, "Buenas tardes"),
        (18, "Buenas tardes"),
        (19, "Buenas noches"),
        (2, "Buenas noches"),
    ],
)
def test_greeting_for(hour, expected):
    assert greeting_for(hour) == expected
