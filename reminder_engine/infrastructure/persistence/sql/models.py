"""
Database models for the reminder engine audit trail
"""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TimestampMixin:
    """Mixin para agregar timestamps automáticos."""

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )


class MessageLogModel(Base, TimestampMixin):
    """Registro de cada mensaje entrante y saliente."""

    __tablename__ = "message_log"

    id = Column(String(36), primary_key=True)
    direction = Column(String(20), nullable=False)  # outbound, inbound
    kind = Column(String(40), nullable=False)
    content = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False)
    phone = Column(String(30))
    channel_id = Column(String(100))
    appointment_id = Column(String(100))
    patient_id = Column(String(100))
    template_name = Column(String(100))
    external_message_id = Column(String(255))  # key.id de Evolution API
    error = Column(Text)

    __table_args__ = (
        Index("idx_message_log_external", external_message_id),
        Index("idx_message_log_appointment", appointment_id),
        Index("idx_message_log_status", status),
    )


class RescheduleAlertModel(Base):
    """Alertas de reagendamiento para el panel de la secretaria."""

    __tablename__ = "reschedule_alerts"

    id = Column(String(36), primary_key=True)
    appointment_id = Column(String(100), nullable=False)
    patient_id = Column(String(100), nullable=False)
    patient_name = Column(String(200), nullable=False, default="")
    patient_phone = Column(String(30), nullable=False, default="")
    detected_message = Column(Text, nullable=False)
    whatsapp_link = Column(String(255), nullable=False)
    appointment_time = Column(DateTime(timezone=True))

    # Estado
    is_read = Column(Boolean, default=False, nullable=False)
    is_resolved = Column(Boolean, default=False, nullable=False)
    resolved_by = Column(String(100))
    resolved_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        Index("idx_reschedule_alerts_appointment", appointment_id),
        Index("idx_reschedule_alerts_open", is_resolved),
    )


class AppointmentTransitionModel(Base):
    """Auditoría de cambios de estado de turnos."""

    __tablename__ = "appointment_status_transitions"

    id = Column(String(36), primary_key=True)
    appointment_id = Column(String(100), nullable=False)
    from_status = Column(String(40), nullable=False)
    to_status = Column(String(40), nullable=False)
    event = Column(String(40), nullable=False)
    reason = Column(Text)
    occurred_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_transitions_appointment", appointment_id),)
