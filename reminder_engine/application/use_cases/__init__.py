"""
Reminder engine use cases.
"""

from .bulk_send import BulkSendReport, BulkSendUseCase
from .manage_reschedule_alerts import RescheduleAlertService
from .no_confirmation_alerts import NoConfirmationAlertUseCase, NoConfirmationReport
from .process_inbound_message import (
    InboundMessage,
    InboundResult,
    ProcessDeliveryReceiptUseCase,
    ProcessInboundMessageUseCase,
)
from .reschedule_workflow import RescheduleOutcome, RescheduleWorkflow

__all__ = [
    "BulkSendReport",
    "BulkSendUseCase",
    "InboundMessage",
    "InboundResult",
    "NoConfirmationAlertUseCase",
    "NoConfirmationReport",
    "ProcessDeliveryReceiptUseCase",
    "ProcessInboundMessageUseCase",
    "RescheduleAlertService",
    "RescheduleOutcome",
    "RescheduleWorkflow",
]
