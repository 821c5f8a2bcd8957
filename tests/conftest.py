"""
Shared pytest fixtures for all tests.

Provides in-memory stores, a fake messaging provider, a controllable clock for
the channel governor and a fully wired dispatcher.
"""

import asyncio
import os
import random
from datetime import datetime

import pytest
import pytz

from reminder_engine.application.ports.messaging_port import ProviderSendResult
from reminder_engine.application.services.channel_governor import AntiBlockConfig, ChannelGovernor
from reminder_engine.application.services.state_machine import AppointmentStateMachine
from reminder_engine.application.use_cases.reschedule_workflow import RescheduleWorkflow
from reminder_engine.core.domain.exceptions import TransportError
from reminder_engine.domain.entities.appointment import Appointment
from reminder_engine.domain.entities.channel import Channel
from reminder_engine.domain.entities.patient import Patient
from reminder_engine.domain.value_objects.channel_state import ChannelPurpose, ConnectionState
from reminder_engine.infrastructure.persistence.memory import (
    InMemoryAppointmentStore,
    InMemoryChannelStore,
    InMemoryMessageLog,
    InMemoryPatientStore,
    InMemoryReminderLedger,
    InMemoryRescheduleAlertRepository,
    InMemoryTransitionAuditLog,
)
from reminder_engine.infrastructure.scheduler.reminder_dispatcher import ReminderDispatcher

# Ensure test environment
os.environ["ENVIRONMENT"] = "test"

CLINIC_TZ = pytz.timezone("America/Asuncion")


def local_time(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    """Aware datetime in the clinic time zone."""
    return CLINIC_TZ.localize(datetime(year, month, day, hour, minute))


# ============================================================================
# FAKES
# ============================================================================


class FakeProvider:
    """MessagingProvider that records sends and fails on demand."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []
        self.failing_phones: set[str] = set()
        self.error: Exception | None = None
        self.delay: float = 0.0

    async def send(self, instance_id: str, phone: str, text: str) -> ProviderSendResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if phone in self.failing_phones:
            raise TransportError(f"provider rejected {phone}", status_code=500)
        self.sent.append((instance_id, phone, text))
        return ProviderSendResult(external_message_id=f"wamid-{len(self.sent)}")

    def texts_to(self, phone: str) -> list[str]:
        return [text for _, to, text in self.sent if to == phone]


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ============================================================================
# DOMAIN FIXTURES
# ============================================================================


@pytest.fixture
def patient() -> Patient:
    return Patient(id="pat-1", name="María José Benítez", phone="595981123456")


@pytest.fixture
def channel() -> Channel:
    return Channel(
        id="ch-1",
        external_instance_id="clinic-main",
        purpose=ChannelPurpose.GENERAL,
        connection_state=ConnectionState.CONNECTED,
    )


@pytest.fixture
def make_appointment():
    def _make(appointment_id: str = "apt-1", patient_id: str = "pat-1", at: datetime | None = None, **kwargs):
        return Appointment(
            id=appointment_id,
            patient_id=patient_id,
            scheduled_at=at or local_time(2026, 3, 12, 9),
            **kwargs,
        )

    return _make


# ============================================================================
# STORES
# ============================================================================


@pytest.fixture
def appointment_store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture
def patient_store(patient) -> InMemoryPatientStore:
    return InMemoryPatientStore([patient])


@pytest.fixture
def channel_store(channel) -> InMemoryChannelStore:
    return InMemoryChannelStore([channel])


@pytest.fixture
def message_log() -> InMemoryMessageLog:
    return InMemoryMessageLog()


@pytest.fixture
def alert_repository() -> InMemoryRescheduleAlertRepository:
    return InMemoryRescheduleAlertRepository()


@pytest.fixture
def audit_log() -> InMemoryTransitionAuditLog:
    return InMemoryTransitionAuditLog()


@pytest.fixture
def ledger() -> InMemoryReminderLedger:
    return InMemoryReminderLedger()


# ============================================================================
# SERVICES
# ============================================================================


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def anti_block_config() -> AntiBlockConfig:
    return AntiBlockConfig(daily_limit=10, health_window_size=10, health_min_samples=5)


@pytest.fixture
def governor(channel_store, provider, anti_block_config, fake_clock) -> ChannelGovernor:
    return ChannelGovernor(
        channel_store,
        provider,
        anti_block_config,
        clock=fake_clock,
        sleep=fake_clock.sleep,
        rng=random.Random(42),
    )


@pytest.fixture
def state_machine(appointment_store, audit_log) -> AppointmentStateMachine:
    return AppointmentStateMachine(appointment_store, audit_log)


@pytest.fixture
def dispatcher(
    appointment_store, patient_store, channel_store, governor, state_machine, message_log, ledger
) -> ReminderDispatcher:
    return ReminderDispatcher(
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
        max_attempts=5,
    )


@pytest.fixture
def workflow(state_machine, governor, channel_store, message_log, alert_repository) -> RescheduleWorkflow:
    return RescheduleWorkflow(
        state_machine,
        governor,
        channel_store,
        message_log,
        alert_repository,
        tz=CLINIC_TZ,
        corporate_number="595971000000",
    )
