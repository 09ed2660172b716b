"""Contract event ingestion and reconciliation."""

from blinks_relay.events.cursor import (
    CursorStore,
    EventCursor,
    MemoryCursorStore,
    SqlCursorStore,
)
from blinks_relay.events.decoding import decode_event, normalize_topic, normalize_topics
from blinks_relay.events.ingestion import EventIngestionLoop, LoopState, PollResult
from blinks_relay.events.models import (
    Channel,
    ContractEvent,
    EventKind,
    FailedEvent,
    InitiatedEvent,
    SettledEvent,
    UnknownEvent,
)
from blinks_relay.events.reconciliation import ReconcileOutcome, Reconciler

__all__ = [
    # Cursor
    "EventCursor",
    "CursorStore",
    "MemoryCursorStore",
    "SqlCursorStore",
    # Decoding
    "decode_event",
    "normalize_topic",
    "normalize_topics",
    # Models
    "Channel",
    "ContractEvent",
    "EventKind",
    "InitiatedEvent",
    "SettledEvent",
    "FailedEvent",
    "UnknownEvent",
    # Loop
    "EventIngestionLoop",
    "LoopState",
    "PollResult",
    "Reconciler",
    "ReconcileOutcome",
]
