"""
Dependency Injection Container

Creates and wires every reminder engine component. Memory adapters back the
stores by default; SQLAlchemy repositories and the Redis ledger take over when
DATABASE_URL / REDIS_URL are configured. The clinic booking system plugs its own
appointment and patient stores in through the constructor.
"""

import logging

import pytz
from redis.asyncio import Redis

from reminder_engine.config.settings import Settings, get_settings

from ..application.ports import (
    AppointmentStore,
    ChannelStore,
    MessageLogRepository,
    MessagingProvider,
    PatientStore,
    ReminderLedger,
    RescheduleAlertRepository,
    TransitionAuditLog,
)
from ..application.services.channel_governor import AntiBlockConfig, ChannelGovernor, PacingProfile
from ..application.services.intent_classifier import IntentClassifier
from ..application.services.state_machine import AppointmentStateMachine
from ..application.services.template_resolver import MessageTemplateResolver
from ..application.use_cases import (
    BulkSendUseCase,
    NoConfirmationAlertUseCase,
    ProcessDeliveryReceiptUseCase,
    ProcessInboundMessageUseCase,
    RescheduleAlertService,
    RescheduleWorkflow,
)
from ..domain.entities.channel import Channel
from ..domain.value_objects.channel_state import ChannelPurpose
from ..infrastructure.messaging.evolution_client import EvolutionApiClient
from ..infrastructure.persistence.memory import (
    InMemoryAppointmentStore,
    InMemoryChannelStore,
    InMemoryMessageLog,
    InMemoryPatientStore,
    InMemoryReminderLedger,
    InMemoryRescheduleAlertRepository,
    InMemoryTransitionAuditLog,
)
from ..infrastructure.persistence.redis_ledger import RedisReminderLedger
from ..infrastructure.persistence.sql import (
    Database,
    SqlMessageLogRepository,
    SqlRescheduleAlertRepository,
    SqlTransitionAuditLog,
)
from ..infrastructure.scheduler.reminder_dispatcher import ReminderDispatcher
from ..infrastructure.scheduler.reminder_scheduler import ReminderCadenceScheduler

logger = logging.getLogger(__name__)


class ReminderEngineContainer:
    """
    Dependency Injection Container.

    Single Responsibility: Create and wire all reminder engine dependencies.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        provider: MessagingProvider | None = None,
        appointment_store: AppointmentStore | None = None,
        patient_store: PatientStore | None = None,
        channel_store: ChannelStore | None = None,
    ):
        """
        Initialize container.

        Args:
            settings: Application settings (uses default if not provided)
            provider: Messaging provider override (defaults to Evolution API)
            appointment_store: Booking system appointment store
            patient_store: Booking system patient store
            channel_store: Channel registry
        """
        self.settings = settings or get_settings()
        s = self.settings
        self.tz = pytz.timezone(s.CLINIC_TIMEZONE)

        # Storage
        self.database: Database | None = Database(s.DATABASE_URL, echo=s.DB_ECHO) if s.DATABASE_URL else None
        self.redis: Redis | None = Redis.from_url(s.REDIS_URL, decode_responses=True) if s.REDIS_URL else None

        self.appointments: AppointmentStore = appointment_store or InMemoryAppointmentStore()
        self.patients: PatientStore = patient_store or InMemoryPatientStore(
            default_country_code=s.DEFAULT_COUNTRY_CODE
        )
        self.channels: ChannelStore = channel_store or self._default_channel_store()
        self.message_log: MessageLogRepository = self._create_message_log()
        self.alerts: RescheduleAlertRepository = self._create_alert_repository()
        self.audit_log: TransitionAuditLog = self._create_audit_log()
        self.ledger: ReminderLedger = self._create_ledger()

        # Messaging
        self.provider: MessagingProvider = provider or EvolutionApiClient(
            base_url=s.EVOLUTION_API_URL,
            api_key=s.EVOLUTION_API_KEY or "",
            timeout=s.EVOLUTION_REQUEST_TIMEOUT,
        )
        self.governor = ChannelGovernor(self.channels, self.provider, self._anti_block_config())

        # Domain services
        self.state_machine = AppointmentStateMachine(self.appointments, self.audit_log)
        self.resolver = MessageTemplateResolver()
        self.classifier = IntentClassifier()

        # Secretary alert for unconfirmed appointments about to start
        self.no_confirmation = NoConfirmationAlertUseCase(
            self.appointments,
            self.patients,
            self.channels,
            self.governor,
            self.message_log,
            self.ledger,
            tz=self.tz,
            corporate_number=s.CORPORATE_WHATSAPP_NUMBER,
            window_minutes=s.NO_CONFIRMATION_WINDOW_MINUTES,
            critical_minutes=s.NO_CONFIRMATION_CRITICAL_MINUTES,
            history_size=s.REMINDER_HISTORY_SIZE,
        )

        # Scheduling
        self.dispatcher = ReminderDispatcher(
            self.appointments,
            self.patients,
            self.channels,
            self.governor,
            self.state_machine,
            self.message_log,
            self.ledger,
            self.resolver,
            tz=self.tz,
            clinic_name=s.CLINIC_NAME,
            cutoff_hour=s.REMINDER_CUTOFF_HOUR,
            max_attempts=s.REMINDER_MAX_ATTEMPTS,
            history_size=s.REMINDER_HISTORY_SIZE,
        )
        self.scheduler = ReminderCadenceScheduler(
            self.dispatcher,
            self.governor,
            self.resolver,
            timezone_name=s.CLINIC_TIMEZONE,
            cutoff_hour=s.REMINDER_CUTOFF_HOUR,
            enabled=s.REMINDER_SCHEDULER_ENABLED,
            no_confirmation=self.no_confirmation if s.NO_CONFIRMATION_ALERTS_ENABLED else None,
            no_confirmation_interval_minutes=s.NO_CONFIRMATION_CHECK_INTERVAL_MINUTES,
        )

        # Use cases
        self.reschedule_workflow = RescheduleWorkflow(
            self.state_machine,
            self.governor,
            self.channels,
            self.message_log,
            self.alerts,
            tz=self.tz,
            corporate_number=s.CORPORATE_WHATSAPP_NUMBER,
        )
        self.inbound = ProcessInboundMessageUseCase(
            self.patients,
            self.appointments,
            self.state_machine,
            self.classifier,
            self.reschedule_workflow,
            self.governor,
            self.message_log,
            default_country_code=s.DEFAULT_COUNTRY_CODE,
        )
        self.receipts = ProcessDeliveryReceiptUseCase(self.message_log, self.governor)
        self.alert_service = RescheduleAlertService(self.alerts)
        self.bulk_send = BulkSendUseCase(
            self.patients,
            self.channels,
            self.governor,
            self.message_log,
            tz=self.tz,
            cutoff_hour=s.REMINDER_CUTOFF_HOUR,
            clinic_name=s.CLINIC_NAME,
        )

        logger.info(
            f"ReminderEngineContainer initialized (database={'sql' if self.database else 'memory'}, "
            f"ledger={'redis' if self.redis else 'memory'})"
        )

    # ============================================================
    # FACTORIES
    # ============================================================

    def _default_channel_store(self) -> InMemoryChannelStore:
        instance = self.settings.EVOLUTION_DEFAULT_INSTANCE
        return InMemoryChannelStore(
            [Channel(id=instance, external_instance_id=instance, purpose=ChannelPurpose.GENERAL)]
        )

    def _create_message_log(self) -> MessageLogRepository:
        if self.database:
            return SqlMessageLogRepository(self.database)
        return InMemoryMessageLog()

    def _create_alert_repository(self) -> RescheduleAlertRepository:
        if self.database:
            return SqlRescheduleAlertRepository(self.database)
        return InMemoryRescheduleAlertRepository()

    def _create_audit_log(self) -> TransitionAuditLog:
        if self.database:
            return SqlTransitionAuditLog(self.database)
        return InMemoryTransitionAuditLog()

    def _create_ledger(self) -> ReminderLedger:
        if self.redis:
            return RedisReminderLedger(self.redis, ttl_seconds=self.settings.REMINDER_LEDGER_TTL_SECONDS)
        return InMemoryReminderLedger()

    def _anti_block_config(self) -> AntiBlockConfig:
        s = self.settings
        return AntiBlockConfig(
            daily_limit=s.CHANNEL_DAILY_LIMIT,
            pause_threshold_health=s.CHANNEL_PAUSE_THRESHOLD_HEALTH,
            health_window_size=s.HEALTH_WINDOW_SIZE,
            health_min_samples=s.HEALTH_MIN_SAMPLES,
            send_timeout_seconds=s.SEND_TIMEOUT_SECONDS,
            reminder_pacing=PacingProfile("reminder", s.REMINDER_PACING_MIN_SECONDS, s.REMINDER_PACING_MAX_SECONDS),
            bulk_pacing=PacingProfile("manual_bulk", s.BULK_PACING_MIN_SECONDS, s.BULK_PACING_MAX_SECONDS),
            conversational_pacing=PacingProfile(
                "conversational", s.CONVERSATIONAL_PACING_MIN_SECONDS, s.CONVERSATIONAL_PACING_MAX_SECONDS
            ),
        )

    # ============================================================
    # SHUTDOWN
    # ============================================================

    async def close(self) -> None:
        """Release HTTP, database and Redis connections."""
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()
        if self.database:
            await self.database.dispose()
        if self.redis:
            await self.redis.aclose()
        logger.info("ReminderEngineContainer closed")
