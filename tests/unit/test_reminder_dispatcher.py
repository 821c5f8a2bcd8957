# ============================================================================
# Tests for ReminderDispatcher (one cadence trigger run)
# ============================================================================
"""Unit tests for ReminderDispatcher.

Appointments on Thursday 2026-03-12 at 09:00; triggers run from Tuesday the
10th, so "2 days before" windows land on the appointment date.
"""

from datetime import timedelta

import pytest

from reminder_engine.domain.entities.patient import Patient
from reminder_engine.domain.entities.reminder_job import TWO_HOURS_BEFORE
from reminder_engine.domain.value_objects.appointment_status import AppointmentStatus
from reminder_engine.domain.value_objects.channel_state import ConnectionState
from reminder_engine.domain.value_objects.message import MessageKind, MessageStatus
from reminder_engine.infrastructure.scheduler.reminder_dispatcher import ReminderDispatcher
from tests.conftest import CLINIC_TZ, local_time

PHONE = "595981123456"
TUESDAY_10H = local_time(2026, 3, 10, 10)


class TestCadenceSend:
    """Tests for the happy path of a trigger."""

    @pytest.mark.asyncio
    async def test_two_days_before_sends_reminder(
        self, dispatcher, appointment_store, make_appointment, provider, message_log
    ):
        appointment_store.add(make_appointment())

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.candidates == 1
        assert report.sent == 1
        text = provider.texts_to(PHONE)[0]
        assert "María" in text
        assert "12/03/2026" in text
        assert "09:00" in text
        assert "Clínica Sonrisa" in text

        entry = message_log.entries[0]
        assert entry.status == MessageStatus.SENT
        assert entry.kind == MessageKind.REMINDER
        assert entry.template_name == "reminder_2days_10h"
        assert entry.external_message_id == "wamid-1"
        assert entry.appointment_id == "apt-1"

        stored = await appointment_store.get("apt-1")
        assert stored.reminder_attempts == 1
        assert stored.last_reminder_at is not None
        assert stored.status == AppointmentStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_rerun_does_not_resend(self, dispatcher, appointment_store, make_appointment, provider):
        appointment_store.add(make_appointment())

        await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)
        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.sent == 0
        assert report.skipped["duplicate"] == 1
        assert len(provider.sent) == 1

    @pytest.mark.asyncio
    async def test_day_before_marks_not_confirmed(self, dispatcher, appointment_store, make_appointment):
        appointment_store.add(make_appointment(at=local_time(2026, 3, 11, 9)))

        report = await dispatcher.run_trigger(1, 7, now=local_time(2026, 3, 10, 7))

        assert report.sent == 1
        stored = await appointment_store.get("apt-1")
        assert stored.status == AppointmentStatus.NOT_CONFIRMED

    @pytest.mark.asyncio
    async def test_two_hours_before(self, dispatcher, appointment_store, make_appointment, provider):
        appointment_store.add(make_appointment("apt-1", at=local_time(2026, 3, 12, 9)))
        appointment_store.add(make_appointment("apt-2", at=local_time(2026, 3, 12, 10, 30)))

        report = await dispatcher.run_trigger(0, TWO_HOURS_BEFORE, now=local_time(2026, 3, 12, 7))

        assert report.candidates == 1
        assert report.sent == 1
        assert "en 2 horas" in provider.sent[0][2]

    def test_window_for_day_before(self, dispatcher):
        window = dispatcher.window_for(1, 10, TUESDAY_10H)

        assert window.start == local_time(2026, 3, 11, 0)
        assert window.end == local_time(2026, 3, 12, 0)
        assert window.contains(local_time(2026, 3, 11, 23, 59))
        assert not window.contains(local_time(2026, 3, 12, 0))


class TestConfirmedAppointments:
    """Confirmed patients stop receiving the escalation and get one reinforcement."""

    @pytest.mark.asyncio
    async def test_confirmed_skips_escalation(self, dispatcher, appointment_store, make_appointment, provider):
        appointment_store.add(
            make_appointment(at=local_time(2026, 3, 11, 9), status=AppointmentStatus.CONFIRMED)
        )

        report = await dispatcher.run_trigger(1, 8, now=local_time(2026, 3, 10, 8))

        assert report.skipped["confirmed"] == 1
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_reinforcement_sent_once(
        self, dispatcher, appointment_store, make_appointment, provider, message_log
    ):
        appointment_store.add(
            make_appointment(at=local_time(2026, 3, 11, 9), status=AppointmentStatus.CONFIRMED)
        )

        first = await dispatcher.run_trigger(1, 10, now=local_time(2026, 3, 10, 10))
        second = await dispatcher.run_trigger(0, 7, now=local_time(2026, 3, 11, 7))

        assert first.sent == 1
        assert second.sent == 0
        assert second.skipped["duplicate"] == 1
        assert len(provider.sent) == 1
        assert message_log.entries[0].kind == MessageKind.REINFORCEMENT
        assert message_log.entries[0].template_name == "reminder_confirmed_reinforcement"
        stored = await appointment_store.get("apt-1")
        assert stored.status == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_confirmed_still_gets_day_two_reminder(self, dispatcher, appointment_store, make_appointment):
        appointment_store.add(make_appointment(status=AppointmentStatus.CONFIRMED))

        report = await dispatcher.run_trigger(2, 15, now=local_time(2026, 3, 10, 15))

        assert report.sent == 1


class TestScreening:
    """Tests for appointments that must not be reminded."""

    @pytest.mark.asyncio
    async def test_rescheduling_pending_is_skipped(self, dispatcher, appointment_store, make_appointment, provider):
        appointment_store.add(make_appointment(status=AppointmentStatus.RESCHEDULING_PENDING))

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.skipped["rescheduling_pending"] == 1
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_terminal_appointments_are_not_candidates(self, dispatcher, appointment_store, make_appointment):
        appointment_store.add(make_appointment(status=AppointmentStatus.CANCELLED))

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.candidates == 0

    @pytest.mark.asyncio
    async def test_reminder_ceiling(self, dispatcher, appointment_store, make_appointment, provider):
        appointment_store.add(make_appointment(reminder_attempts=5))

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.skipped["max_attempts"] == 1
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_patient_without_phone(self, dispatcher, appointment_store, make_appointment, provider):
        appointment_store.add(make_appointment(patient_id="ghost"))

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.skipped["no_phone"] == 1
        assert provider.sent == []


class TestCutoff:
    @pytest.mark.asyncio
    async def test_slot_at_cutoff_hour_never_sends(self, dispatcher, appointment_store, make_appointment, provider):
        appointment_store.add(make_appointment())

        report = await dispatcher.run_trigger(2, 19, now=local_time(2026, 3, 10, 19))

        assert report.cutoff_reached is True
        assert report.candidates == 0
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_late_manual_run_is_refused(self, dispatcher, appointment_store, make_appointment, provider):
        appointment_store.add(make_appointment(at=local_time(2026, 3, 11, 9)))

        report = await dispatcher.run_trigger(1, 18, now=local_time(2026, 3, 10, 19, 30))

        assert report.cutoff_reached is True
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_cutoff_during_pacing_pause_releases_claim(
        self,
        appointment_store,
        patient_store,
        channel_store,
        governor,
        state_machine,
        message_log,
        ledger,
        make_appointment,
        provider,
        fake_clock,
    ):
        dispatcher = ReminderDispatcher(
            appointment_store,
            patient_store,
            channel_store,
            governor,
            state_machine,
            message_log,
            ledger,
            tz=CLINIC_TZ,
            clinic_name="Clínica Sonrisa",
            cutoff_hour=19,
            monotonic=fake_clock,
        )
        patient_store.add(Patient(id="pat-2", name="Juan Pérez", phone="595982000000"))
        appointment_store.add(make_appointment("apt-1", at=local_time(2026, 3, 10, 20)))
        appointment_store.add(make_appointment("apt-2", patient_id="pat-2", at=local_time(2026, 3, 10, 20, 30)))

        # The 3-5s pause after the 18:59:57 send crosses 19:00
        now = local_time(2026, 3, 10, 18, 59) + timedelta(seconds=57)
        report = await dispatcher.run_trigger(0, TWO_HOURS_BEFORE, now=now)

        assert report.sent == 1
        assert report.cutoff_reached is True
        assert report.skipped["cutoff"] == 1
        assert report.rate_limited == 0
        assert len(provider.sent) == 1
        assert len(fake_clock.sleeps) == 1

        unsent = next(e for e in message_log.entries if e.status == MessageStatus.FAILED)
        assert not await ledger.is_claimed(f"{unsent.appointment_id}:2026-03-10:0:2h_before")

    def test_cutoff_reached(self, dispatcher):
        assert dispatcher.cutoff_reached(18, local_time(2026, 3, 10, 18, 59)) is False
        assert dispatcher.cutoff_reached(18, local_time(2026, 3, 10, 19)) is True
        assert dispatcher.cutoff_reached(TWO_HOURS_BEFORE, local_time(2026, 3, 10, 20)) is True


class TestFailures:
    """One appointment's failure never aborts the batch."""

    @pytest.mark.asyncio
    async def test_transport_failure_is_isolated(
        self, dispatcher, appointment_store, patient_store, make_appointment, provider, message_log
    ):
        patient_store.add(Patient(id="pat-2", name="Juan Pérez", phone="595982000000"))
        appointment_store.add(make_appointment("apt-1"))
        appointment_store.add(make_appointment("apt-2", patient_id="pat-2", at=local_time(2026, 3, 12, 10)))
        provider.failing_phones.add("595982000000")

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.sent == 1
        assert report.failed == 1
        failed = [e for e in message_log.entries if e.status == MessageStatus.FAILED]
        assert len(failed) == 1
        assert failed[0].appointment_id == "apt-2"
        assert (await appointment_store.get("apt-2")).reminder_attempts == 1

    @pytest.mark.asyncio
    async def test_no_connected_channel_logs_failure(
        self, dispatcher, appointment_store, make_appointment, channel, message_log, ledger
    ):
        channel.connection_state = ConnectionState.DISCONNECTED
        appointment_store.add(make_appointment())

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.no_channel == 1
        assert len(message_log.entries) == 1
        assert message_log.entries[0].status == MessageStatus.FAILED
        assert message_log.entries[0].template_name == "reminder_2days_10h"
        assert not await ledger.is_claimed("apt-1:2026-03-12:2:10")

    @pytest.mark.asyncio
    async def test_daily_limit_defers_rest_of_batch(
        self, dispatcher, appointment_store, patient_store, make_appointment, channel, provider, ledger
    ):
        channel.daily_message_count = 9
        patient_store.add(Patient(id="pat-2", name="Juan Pérez", phone="595982000000"))
        appointment_store.add(make_appointment("apt-1"))
        appointment_store.add(make_appointment("apt-2", patient_id="pat-2", at=local_time(2026, 3, 12, 10)))

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.sent == 1
        assert report.rate_limited == 1
        assert len(provider.sent) == 1
        assert not await ledger.is_claimed("apt-2:2026-03-12:2:10")

    @pytest.mark.asyncio
    async def test_all_channels_at_limit(self, dispatcher, appointment_store, make_appointment, channel, provider):
        channel.daily_message_count = 10
        appointment_store.add(make_appointment())

        report = await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)

        assert report.rate_limited == 1
        assert provider.sent == []


class TestHistory:
    @pytest.mark.asyncio
    async def test_history_and_statistics(self, dispatcher, appointment_store, make_appointment):
        appointment_store.add(make_appointment())

        await dispatcher.run_trigger(2, 10, now=TUESDAY_10H)
        await dispatcher.run_trigger(2, 15, now=local_time(2026, 3, 10, 15))

        history = dispatcher.history()
        assert [r.trigger for r in history] == ["2d_15", "2d_10"]
        assert history[0].finished_at is not None

        stats = dispatcher.statistics()
        assert stats["runs"] == 2
        assert stats["sent"] == 2
        assert stats["last_run"]["trigger"] == "2d_15"
