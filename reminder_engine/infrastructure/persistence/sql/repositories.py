# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Reminder Engine)
# Description: SQLAlchemy async repositories for the audit ports.
# ============================================================================
"""SQLAlchemy repositories.

Implement MessageLogRepository, RescheduleAlertRepository and TransitionAuditLog.
Each call runs in its own session/transaction; entities are plain dataclasses,
mapped to and from the models here.
"""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import func, select

from ....domain.entities.appointment import StatusTransition
from ....domain.entities.message_log import MessageLogEntry
from ....domain.entities.reschedule_alert import RescheduleAlert
from ....domain.value_objects.appointment_status import AppointmentEvent, AppointmentStatus
from ....domain.value_objects.message import MessageDirection, MessageKind, MessageStatus
from .database import Database
from .models import AppointmentTransitionModel, MessageLogModel, RescheduleAlertModel

logger = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SqlMessageLogRepository:
    def __init__(self, db: Database):
        self._db = db

    @staticmethod
    def _to_entity(model: MessageLogModel) -> MessageLogEntry:
        return MessageLogEntry(
            id=model.id,
            direction=MessageDirection(model.direction),
            kind=MessageKind(model.kind),
            content=model.content,
            status=MessageStatus(model.status),
            phone=model.phone,
            channel_id=model.channel_id,
            appointment_id=model.appointment_id,
            patient_id=model.patient_id,
            template_name=model.template_name,
            external_message_id=model.external_message_id,
            error=model.error,
            created_at=_aware(model.created_at),
            updated_at=_aware(model.updated_at),
        )

    async def append(self, entry: MessageLogEntry) -> MessageLogEntry:
        async with self._db.session() as session:
            session.add(
                MessageLogModel(
                    id=entry.id,
                    direction=entry.direction.value,
                    kind=entry.kind.value,
                    content=entry.content,
                    status=entry.status.value,
                    phone=entry.phone,
                    channel_id=entry.channel_id,
                    appointment_id=entry.appointment_id,
                    patient_id=entry.patient_id,
                    template_name=entry.template_name,
                    external_message_id=entry.external_message_id,
                    error=entry.error,
                    created_at=entry.created_at,
                    updated_at=entry.updated_at,
                )
            )
        return entry

    async def update_status(
        self,
        entry_id: str,
        status: MessageStatus,
        *,
        external_message_id: str | None = None,
        error: str | None = None,
    ) -> MessageLogEntry | None:
        async with self._db.session() as session:
            model = await session.get(MessageLogModel, entry_id)
            if model is None:
                logger.warning(f"Message log entry {entry_id} not found")
                return None
            model.status = status.value
            if external_message_id is not None:
                model.external_message_id = external_message_id
            if error is not None:
                model.error = error
            model.updated_at = datetime.now(UTC)
            await session.flush()
            return self._to_entity(model)

    async def find_by_external_id(self, external_message_id: str) -> MessageLogEntry | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(MessageLogModel)
                .where(
                    MessageLogModel.external_message_id == external_message_id,
                    MessageLogModel.direction == MessageDirection.OUTBOUND.value,
                )
                .limit(1)
            )
            model = result.scalar_one_or_none()
            return self._to_entity(model) if model else None

    async def list_recent(self, limit: int = 50, appointment_id: str | None = None) -> list[MessageLogEntry]:
        async with self._db.session() as session:
            query = select(MessageLogModel).order_by(MessageLogModel.created_at.desc()).limit(limit)
            if appointment_id is not None:
                query = query.where(MessageLogModel.appointment_id == appointment_id)
            result = await session.execute(query)
            return [self._to_entity(m) for m in result.scalars().all()]

    async def count_by_status(self, since: datetime | None = None) -> dict[str, int]:
        async with self._db.session() as session:
            query = (
                select(MessageLogModel.status, func.count())
                .where(MessageLogModel.direction == MessageDirection.OUTBOUND.value)
                .group_by(MessageLogModel.status)
            )
            if since is not None:
                query = query.where(MessageLogModel.created_at >= since)
            result = await session.execute(query)
            return {status: count for status, count in result.all()}


class SqlRescheduleAlertRepository:
    def __init__(self, db: Database):
        self._db = db

    @staticmethod
    def _to_entity(model: RescheduleAlertModel) -> RescheduleAlert:
        return RescheduleAlert(
            id=model.id,
            appointment_id=model.appointment_id,
            patient_id=model.patient_id,
            patient_name=model.patient_name,
            patient_phone=model.patient_phone,
            detected_message=model.detected_message,
            whatsapp_link=model.whatsapp_link,
            appointment_time=_aware(model.appointment_time),
            is_read=model.is_read,
            is_resolved=model.is_resolved,
            resolved_by=model.resolved_by,
            resolved_at=_aware(model.resolved_at),
            created_at=_aware(model.created_at),
        )

    @staticmethod
    def _apply(model: RescheduleAlertModel, alert: RescheduleAlert) -> None:
        model.appointment_id = alert.appointment_id
        model.patient_id = alert.patient_id
        model.patient_name = alert.patient_name
        model.patient_phone = alert.patient_phone
        model.detected_message = alert.detected_message
        model.whatsapp_link = alert.whatsapp_link
        model.appointment_time = alert.appointment_time
        model.is_read = alert.is_read
        model.is_resolved = alert.is_resolved
        model.resolved_by = alert.resolved_by
        model.resolved_at = alert.resolved_at

    async def add(self, alert: RescheduleAlert) -> RescheduleAlert:
        async with self._db.session() as session:
            model = RescheduleAlertModel(id=alert.id, created_at=alert.created_at)
            self._apply(model, alert)
            session.add(model)
        return alert

    async def get(self, alert_id: str) -> RescheduleAlert | None:
        async with self._db.session() as session:
            model = await session.get(RescheduleAlertModel, alert_id)
            return self._to_entity(model) if model else None

    async def save(self, alert: RescheduleAlert) -> RescheduleAlert:
        async with self._db.session() as session:
            model = await session.get(RescheduleAlertModel, alert.id)
            if model is None:
                model = RescheduleAlertModel(id=alert.id, created_at=alert.created_at)
                session.add(model)
            self._apply(model, alert)
        return alert

    async def find_open_for_appointment(self, appointment_id: str) -> RescheduleAlert | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(RescheduleAlertModel)
                .where(
                    RescheduleAlertModel.appointment_id == appointment_id,
                    RescheduleAlertModel.is_resolved.is_(False),
                )
                .order_by(RescheduleAlertModel.created_at.desc())
                .limit(1)
            )
            model = result.scalar_one_or_none()
            return self._to_entity(model) if model else None

    async def list_alerts(
        self,
        *,
        is_read: bool | None = None,
        is_resolved: bool | None = None,
        limit: int = 100,
    ) -> list[RescheduleAlert]:
        async with self._db.session() as session:
            query = select(RescheduleAlertModel).order_by(RescheduleAlertModel.created_at.desc()).limit(limit)
            if is_read is not None:
                query = query.where(RescheduleAlertModel.is_read.is_(is_read))
            if is_resolved is not None:
                query = query.where(RescheduleAlertModel.is_resolved.is_(is_resolved))
            result = await session.execute(query)
            return [self._to_entity(m) for m in result.scalars().all()]


class SqlTransitionAuditLog:
    def __init__(self, db: Database):
        self._db = db

    async def append(self, transition: StatusTransition) -> None:
        async with self._db.session() as session:
            session.add(
                AppointmentTransitionModel(
                    id=str(uuid.uuid4()),
                    appointment_id=transition.appointment_id,
                    from_status=transition.from_status.value,
                    to_status=transition.to_status.value,
                    event=transition.event.value,
                    reason=transition.reason,
                    occurred_at=transition.occurred_at,
                )
            )

    async def list_for(self, appointment_id: str) -> list[StatusTransition]:
        async with self._db.session() as session:
            result = await session.execute(
                select(AppointmentTransitionModel)
                .where(AppointmentTransitionModel.appointment_id == appointment_id)
                .order_by(AppointmentTransitionModel.occurred_at)
            )
            return [
                StatusTransition(
                    appointment_id=m.appointment_id,
                    from_status=AppointmentStatus(m.from_status),
                    to_status=AppointmentStatus(m.to_status),
                    event=AppointmentEvent(m.event),
                    occurred_at=_aware(m.occurred_at),
                    reason=m.reason,
                )
                for m in result.scalars().all()
            ]
