# ============================================================================
# Tests for reminder engine domain entities and value objects
# ============================================================================
"""Unit tests for appointment status rules, phones, reminder jobs and alerts."""

from datetime import UTC, date, datetime

import pytest

from reminder_engine.core.domain.exceptions import AlertAlreadyResolved
from reminder_engine.domain.entities.channel import Channel
from reminder_engine.domain.entities.patient import Patient
from reminder_engine.domain.entities.reminder_job import TWO_HOURS_BEFORE, ReminderJob
from reminder_engine.domain.entities.reschedule_alert import RescheduleAlert
from reminder_engine.domain.value_objects.appointment_status import AppointmentEvent, AppointmentStatus
from reminder_engine.domain.value_objects.channel_state import ChannelPurpose, ConnectionState
from reminder_engine.domain.value_objects.message import MessageStatus
from reminder_engine.domain.value_objects.phone import normalize_phone, whatsapp_link


class TestAppointmentStatus:
    """Tests for AppointmentStatus transition rules."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.SCHEDULED, AppointmentStatus.NOT_CONFIRMED),
            (AppointmentStatus.NOT_CONFIRMED, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.NOT_CONFIRMED, AppointmentStatus.RESCHEDULING_PENDING),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.RESCHEDULING_PENDING),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
            (AppointmentStatus.RESCHEDULING_PENDING, AppointmentStatus.SCHEDULED),
            (AppointmentStatus.RESCHEDULING_PENDING, AppointmentStatus.CANCELLED),
        ],
    )
    def test_valid_transitions(self, current, target):
        assert current.can_transition_to(target) is True

    @pytest.mark.parametrize(
        "current,target",
        [
            (AppointmentStatus.CONFIRMED, AppointmentStatus.NOT_CONFIRMED),
            (AppointmentStatus.RESCHEDULING_PENDING, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.COMPLETED, AppointmentStatus.SCHEDULED),
            (AppointmentStatus.CANCELLED, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.NO_SHOW, AppointmentStatus.RESCHEDULING_PENDING),
        ],
    )
    def test_invalid_transitions(self, current, target):
        assert current.can_transition_to(target) is False

    def test_terminal_states(self):
        terminal = {s for s in AppointmentStatus if s.is_terminal()}
        assert terminal == {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}

    def test_reminder_and_confirmation_states(self):
        reminded = {s for s in AppointmentStatus if s.allows_reminders()}
        awaiting = {s for s in AppointmentStatus if s.awaits_confirmation()}

        assert reminded == {AppointmentStatus.SCHEDULED, AppointmentStatus.NOT_CONFIRMED, AppointmentStatus.CONFIRMED}
        assert awaiting == {AppointmentStatus.SCHEDULED, AppointmentStatus.NOT_CONFIRMED}
        assert AppointmentStatus.NOT_CONFIRMED.display_name == "No confirmado"

    def test_event_targets(self):
        assert AppointmentEvent.CONFIRM.target_status == AppointmentStatus.CONFIRMED
        assert AppointmentEvent.REQUEST_RESCHEDULE.target_status == AppointmentStatus.RESCHEDULING_PENDING
        assert AppointmentEvent.RESCHEDULE.target_status == AppointmentStatus.SCHEDULED


class TestPhoneHelpers:
    """Tests for phone normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("0981 123456", "595981123456"),
            ("+595 981 123-456", "595981123456"),
            ("595981123456", "595981123456"),
            ("595981123456@s.whatsapp.net", "595981123456"),
            ("595981123456:12@s.whatsapp.net", "595981123456"),
            ("00595981123456", "595981123456"),
            ("981123456", "595981123456"),
            ("+54 9 11 5555 1234", "5491155551234"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize_phone(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_custom_country_code(self):
        assert normalize_phone("011 5555 1234", default_country_code="54") == "541155551234"

    def test_whatsapp_link(self):
        assert whatsapp_link("+595 981 123456") == "https://wa.me/595981123456"


class TestReminderJob:
    """Tests for the reminder dedup key."""

    def _job(self, **kwargs):
        defaults = {
            "appointment_id": "apt-1",
            "appointment_date": date(2026, 3, 12),
            "trigger_time": datetime(2026, 3, 10, 13, tzinfo=UTC),
            "days_before": 2,
            "hour_bucket": 10,
        }
        defaults.update(kwargs)
        return ReminderJob(**defaults)

    def test_dedup_key_includes_slot_and_date(self):
        assert self._job().dedup_key == "apt-1:2026-03-12:2:10"

    def test_two_hours_before_key(self):
        job = self._job(days_before=0, hour_bucket=TWO_HOURS_BEFORE)
        assert job.dedup_key == "apt-1:2026-03-12:0:2h_before"

    def test_reinforcement_key_is_shared_across_slots(self):
        day_before = self._job(days_before=1, hour_bucket=10, reinforcement=True)
        same_day = self._job(days_before=0, hour_bucket=7, reinforcement=True)
        assert day_before.dedup_key == same_day.dedup_key

    def test_rescheduled_date_changes_key(self):
        assert self._job().dedup_key != self._job(appointment_date=date(2026, 3, 19)).dedup_key


class TestRescheduleAlert:
    """Tests for the alert lifecycle."""

    def _alert(self):
        return RescheduleAlert(
            appointment_id="apt-1",
            patient_id="pat-1",
            detected_message="No puedo ese día",
            whatsapp_link="https://wa.me/595981123456",
        )

    def test_resolve_marks_read(self):
        alert = self._alert()
        alert.resolve("secretaria")
        assert alert.is_resolved is True
        assert alert.is_read is True
        assert alert.resolved_by == "secretaria"
        assert alert.resolved_at is not None

    def test_resolve_twice_raises(self):
        alert = self._alert()
        alert.resolve("secretaria")
        with pytest.raises(AlertAlreadyResolved):
            alert.resolve("otra")
        assert alert.resolved_by == "secretaria"

    def test_mark_read_on_resolved_is_noop(self):
        alert = self._alert()
        alert.resolve("secretaria")
        alert.mark_read()
        assert alert.is_read is True
        assert alert.is_open is False


class TestChannel:
    def test_general_channel_serves_any_purpose(self):
        channel = Channel(id="c", external_instance_id="i", purpose=ChannelPurpose.GENERAL)
        assert channel.serves("reminders")
        assert channel.serves(ChannelPurpose.CORPORATE)

    def test_reminder_channel_does_not_serve_corporate(self):
        channel = Channel(id="c", external_instance_id="i", purpose=ChannelPurpose.REMINDERS)
        assert channel.serves("reminders")
        assert not channel.serves("corporate")

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("open", ConnectionState.CONNECTED),
            ("connecting", ConnectionState.CONNECTING),
            ("close", ConnectionState.DISCONNECTED),
            ("unknown", ConnectionState.DISCONNECTED),
            (None, ConnectionState.DISCONNECTED),
        ],
    )
    def test_connection_state_from_provider(self, raw, expected):
        assert ConnectionState.from_provider(raw) == expected


class TestMessageStatus:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("SERVER_ACK", MessageStatus.SENT),
            ("DELIVERY_ACK", MessageStatus.DELIVERED),
            ("read", MessageStatus.READ),
            ("PLAYED", MessageStatus.READ),
            ("ERROR", MessageStatus.FAILED),
            ("SOMETHING", None),
        ],
    )
    def test_from_provider(self, raw, expected):
        assert MessageStatus.from_provider(raw) == expected


def test_patient_first_name():
    assert Patient(id="p", name="María José Benítez", phone="1").first_name == "María"
