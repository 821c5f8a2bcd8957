"""
SQLAlchemy async persistence for the audit trail.
"""

from .database import Database
from .models import AppointmentTransitionModel, Base, MessageLogModel, RescheduleAlertModel
from .repositories import SqlMessageLogRepository, SqlRescheduleAlertRepository, SqlTransitionAuditLog

__all__ = [
    "AppointmentTransitionModel",
    "Base",
    "Database",
    "MessageLogModel",
    "RescheduleAlertModel",
    "SqlMessageLogRepository",
    "SqlRescheduleAlertRepository",
    "SqlTransitionAuditLog",
]
