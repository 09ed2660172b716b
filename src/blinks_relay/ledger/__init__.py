"""Ledger module for payment, transfer and event cursor persistence."""

from blinks_relay.ledger.database import init_db, session_scope
from blinks_relay.ledger.models import (
    EventCursorCheckpoint,
    Payment,
    PaymentStatus,
    Transfer,
    TransferStatus,
)
from blinks_relay.ledger.repository import PaymentRepository

__all__ = [
    # Models
    "Payment",
    "Transfer",
    "EventCursorCheckpoint",
    # Enums
    "PaymentStatus",
    "TransferStatus",
    # Database
    "init_db",
    "session_scope",
    "PaymentRepository",
]
