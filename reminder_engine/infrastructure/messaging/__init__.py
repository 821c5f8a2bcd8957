"""
Messaging infrastructure (Evolution API).
"""

from .evolution_client import EvolutionApiClient
from .webhook_parser import (
    ConnectionUpdate,
    DeliveryReceipt,
    event_name,
    parse_connection,
    parse_inbound,
    parse_receipts,
)

__all__ = [
    "ConnectionUpdate",
    "DeliveryReceipt",
    "EvolutionApiClient",
    "event_name",
    "parse_connection",
    "parse_inbound",
    "parse_receipts",
]
