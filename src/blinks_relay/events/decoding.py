"""Topic normalization and event classification.

Contract events arrive with topics and values as base64-encoded SCVal XDR.
Topics are normalized to canonical strings (symbols and strings as text,
addresses as strkeys, integers in decimal, bytes as text or hex), then the
first topic selects the event variant:

    pay_init / pay_done / pay_fail     [kind, payer, merchant_id]
    xfer_init / xfer_done / xfer_fail  [kind, from, to]
    transfer (Stellar Asset Contract)  [transfer, from, to, asset]

Matching is case-insensitive. The value is the amount as an integer, or a map
with ``amount`` / ``receive_amount`` / ``payment_id`` entries.
"""

import logging
from typing import Hashable, Optional, Union

from stellar_sdk import scval
from stellar_sdk.xdr import SCVal, SCValType

from blinks_relay.events.models import (
    Channel,
    ContractEvent,
    FailedEvent,
    InitiatedEvent,
    SettledEvent,
    UnknownEvent,
)
from blinks_relay.stellar.rpc import RawEvent

logger = logging.getLogger(__name__)

TOPIC_VARIANTS = {
    "pay_init": (Channel.PAYMENT, InitiatedEvent),
    "pay_done": (Channel.PAYMENT, SettledEvent),
    "pay_fail": (Channel.PAYMENT, FailedEvent),
    "xfer_init": (Channel.TRANSFER, InitiatedEvent),
    "xfer_done": (Channel.TRANSFER, SettledEvent),
    "xfer_fail": (Channel.TRANSFER, FailedEvent),
    "transfer": (Channel.TRANSFER, SettledEvent),
}

_INTEGER_DECODERS = {
    SCValType.SCV_I128: scval.from_int128,
    SCValType.SCV_U128: scval.from_uint128,
    SCValType.SCV_I64: scval.from_int64,
    SCValType.SCV_U64: scval.from_uint64,
    SCValType.SCV_I32: scval.from_int32,
    SCValType.SCV_U32: scval.from_uint32,
}


def _bytes_to_text(data: bytes) -> str:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return data.hex()
    return text if text.isprintable() else data.hex()


def scval_to_text(val: SCVal) -> str:
    """Render an SCVal as a canonical string.

    Raises:
        ValueError: For value types that have no canonical text form
    """
    if val.type == SCValType.SCV_SYMBOL:
        return _bytes_to_text(val.sym.sc_symbol)
    if val.type == SCValType.SCV_STRING:
        return _bytes_to_text(val.str.sc_string)
    if val.type == SCValType.SCV_ADDRESS:
        return scval.from_address(val).address
    if val.type == SCValType.SCV_BYTES:
        return _bytes_to_text(scval.from_bytes(val))
    if val.type == SCValType.SCV_BOOL:
        return "true" if scval.from_bool(val) else "false"
    decoder = _INTEGER_DECODERS.get(val.type)
    if decoder is not None:
        return str(decoder(val))
    raise ValueError(f"No text form for {val.type}")


def normalize_topic(raw: Union[str, SCVal]) -> str:
    """Normalize one topic; undecodable input is returned as given."""
    try:
        val = raw if isinstance(raw, SCVal) else SCVal.from_xdr(raw)
        return scval_to_text(val)
    except Exception:
        return raw if isinstance(raw, str) else str(raw)


def normalize_topics(raw_topics: list) -> tuple[str, ...]:
    return tuple(normalize_topic(t) for t in raw_topics or [])


def dedup_key(event: RawEvent, topics: Optional[tuple[str, ...]] = None) -> Hashable:
    """Identity of an event: its id, else (ledger, contract, topics)."""
    if event.id:
        return event.id
    return (event.ledger, event.contract_id, topics if topics is not None else tuple(event.topics))


def _decode_int(val: SCVal) -> Optional[int]:
    decoder = _INTEGER_DECODERS.get(val.type)
    return decoder(val) if decoder is not None else None


def decode_value(raw: Optional[str]) -> dict:
    """Extract amount fields from an event value.

    Returns:
        Dict with optional ``amount``, ``receive_amount`` and ``record_id``
    """
    fields: dict = {}
    if not raw:
        return fields
    try:
        val = SCVal.from_xdr(raw)
    except Exception:
        logger.debug(f"Undecodable event value: {raw[:64]}")
        return fields

    amount = _decode_int(val)
    if amount is not None:
        fields["amount"] = amount
        return fields

    if val.type == SCValType.SCV_MAP and val.map is not None:
        for entry in val.map.sc_map:
            try:
                key = scval_to_text(entry.key).lower()
            except ValueError:
                continue
            if key in ("amount", "send_amount"):
                fields["amount"] = _decode_int(entry.val)
            elif key == "receive_amount":
                fields["receive_amount"] = _decode_int(entry.val)
            elif key in ("payment_id", "paymentid", "transfer_id", "id"):
                try:
                    fields["record_id"] = scval_to_text(entry.val)
                except ValueError:
                    pass
    return fields


def decode_event(raw: RawEvent, topics: Optional[tuple[str, ...]] = None) -> ContractEvent:
    """Classify a raw event into a tagged variant.

    Args:
        raw: Event as returned by the ledger RPC
        topics: Already-normalized topics (normalized here when omitted)
    """
    if topics is None:
        topics = normalize_topics(raw.topics)

    common = dict(
        ledger=raw.ledger,
        contract_id=raw.contract_id,
        topics=topics,
        event_id=raw.id,
        tx_hash=raw.tx_hash,
    )

    if not topics:
        return UnknownEvent(**common)

    variant = TOPIC_VARIANTS.get(topics[0].lower())
    if variant is None or len(topics) < 3:
        return UnknownEvent(**common)

    channel, event_cls = variant
    return event_cls(
        channel=channel,
        payer=topics[1],
        counterparty=topics[2],
        **common,
        **decode_value(raw.value),
    )
