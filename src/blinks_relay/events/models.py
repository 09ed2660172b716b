"""Decoded contract event variants."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Channel(str, Enum):
    """Which aggregate an event refers to."""

    PAYMENT = "payment"
    TRANSFER = "transfer"


class EventKind(str, Enum):
    INITIATED = "initiated"
    SETTLED = "settled"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ContractEvent:
    """Common fields of every decoded event.

    Attributes:
        ledger: Ledger the event was emitted in
        contract_id: Emitting contract (C...)
        topics: Normalized topic strings
        event_id: Network event id, when provided
        tx_hash: Hash of the emitting transaction, when provided
    """

    ledger: int
    contract_id: str
    topics: tuple[str, ...]
    event_id: Optional[str] = None
    tx_hash: Optional[str] = None

    kind = EventKind.UNKNOWN

    @property
    def reference(self) -> Optional[str]:
        """Best identifier of the on-chain transaction behind this event."""
        return self.tx_hash or self.event_id


@dataclass(frozen=True)
class ChannelEvent(ContractEvent):
    """Event about one payment or transfer.

    Attributes:
        channel: PAYMENT or TRANSFER
        payer: Paying account address
        counterparty: Merchant id (payments) or recipient address (transfers)
        amount: Amount sent, smallest unit
        receive_amount: Amount received, when the contract reports it
        record_id: Relay-side payment/transfer id, when the contract echoes it
    """

    channel: Channel = Channel.PAYMENT
    payer: str = ""
    counterparty: str = ""
    amount: Optional[int] = None
    receive_amount: Optional[int] = None
    record_id: Optional[str] = None


@dataclass(frozen=True)
class InitiatedEvent(ChannelEvent):
    kind = EventKind.INITIATED


@dataclass(frozen=True)
class SettledEvent(ChannelEvent):
    kind = EventKind.SETTLED


@dataclass(frozen=True)
class FailedEvent(ChannelEvent):
    kind = EventKind.FAILED


@dataclass(frozen=True)
class UnknownEvent(ContractEvent):
    """Event from a tracked contract that the relay does not act on."""

    kind = EventKind.UNKNOWN
