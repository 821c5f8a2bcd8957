"""Unit tests for the manual bulk send."""

from datetime import timedelta

import pytest

from reminder_engine.application.use_cases.bulk_send import BulkSendUseCase
from reminder_engine.domain.entities.patient import Patient
from reminder_engine.domain.value_objects.message import MessageKind, MessageStatus
from tests.conftest import CLINIC_TZ, local_time


def make_use_case(patient_store, channel_store, governor, message_log, now):
    return BulkSendUseCase(
        patient_store,
        channel_store,
        governor,
        message_log,
        tz=CLINIC_TZ,
        cutoff_hour=19,
        clinic_name="Clínica Sonrisa",
        clock=lambda: now,
    )


@pytest.fixture
def patients(patient_store):
    patient_store.add(Patient(id="pat-2", name="Juan Pérez", phone="595982000000"))
    patient_store.add(Patient(id="pat-3", name="Ana Gómez", phone="595983000000"))
    return patient_store


@pytest.fixture
def use_case(patients, channel_store, governor, message_log):
    return make_use_case(patients, channel_store, governor, message_log, local_time(2026, 3, 10, 9))


class TestBulkSend:
    @pytest.mark.asyncio
    async def test_sends_personalised_text(self, use_case, provider, message_log, fake_clock):
        report = await use_case.execute(
            ["pat-1", "pat-2", "pat-3"], "Hola {patient_name}, {clinic_name} cierra el lunes."
        )

        assert report.sent == 3
        assert report.stopped_reason is None
        assert provider.texts_to("595982000000") == ["Hola Juan, Clínica Sonrisa cierra el lunes."]
        assert all(e.kind == MessageKind.BULK and e.status == MessageStatus.SENT for e in message_log.entries)
        # Slow pacing between each of the three sends
        assert len(fake_clock.sleeps) == 2
        assert all(30.0 <= s <= 90.0 for s in fake_clock.sleeps)

    @pytest.mark.asyncio
    async def test_unknown_patient_is_skipped(self, use_case, provider):
        report = await use_case.execute(["pat-1", "ghost"], "Aviso")

        assert report.sent == 1
        assert report.skipped == 1

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_batch(self, use_case, provider, message_log):
        provider.failing_phones.add("595982000000")

        report = await use_case.execute(["pat-1", "pat-2", "pat-3"], "Aviso")

        assert report.sent == 2
        assert report.failed == 1
        assert "pat-2" in report.errors
        failed = [e for e in message_log.entries if e.status == MessageStatus.FAILED]
        assert [e.patient_id for e in failed] == ["pat-2"]

    @pytest.mark.asyncio
    async def test_rate_limit_stops_batch(self, use_case, channel, provider):
        channel.daily_message_count = 9

        report = await use_case.execute(["pat-1", "pat-2", "pat-3"], "Aviso")

        assert report.sent == 1
        assert report.failed == 1
        assert report.skipped == 1
        assert report.stopped_reason == "rate_limited"
        assert len(provider.sent) == 1

    @pytest.mark.asyncio
    async def test_cutoff_stops_batch(self, patients, channel_store, governor, message_log, provider):
        use_case = make_use_case(patients, channel_store, governor, message_log, local_time(2026, 3, 10, 19, 5))

        report = await use_case.execute(["pat-1", "pat-2"], "Aviso")

        assert report.stopped_reason == "cutoff"
        assert report.skipped == 2
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_cutoff_during_pacing_pause_stops_batch(
        self, patients, channel_store, governor, message_log, provider, fake_clock
    ):
        started = fake_clock.now
        use_case = BulkSendUseCase(
            patients,
            channel_store,
            governor,
            message_log,
            tz=CLINIC_TZ,
            cutoff_hour=19,
            clinic_name="Clínica Sonrisa",
            clock=lambda: local_time(2026, 3, 10, 18, 59) + timedelta(seconds=30 + fake_clock.now - started),
        )

        report = await use_case.execute(["pat-1", "pat-2", "pat-3"], "Aviso")

        # The 30-90s pause after the 18:59:30 send always crosses 19:00
        assert len(fake_clock.sleeps) == 1
        assert [phone for _, phone, _ in provider.sent] == ["595981123456"]
        assert report.sent == 1
        assert report.failed == 0
        assert report.skipped == 2
        assert report.stopped_reason == "cutoff"
        assert [e.status for e in message_log.entries] == [MessageStatus.SENT, MessageStatus.FAILED]
