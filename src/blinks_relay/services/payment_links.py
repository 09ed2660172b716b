"""QR and NFC payment links.

Both encode a ``BLINKS://pay?...`` URI carrying everything the payer's
wallet needs to start a payment. QR links carry an absolute ``expiry``; NFC
links carry the tap timestamp ``ts`` and are only honoured inside a short
freshness window.
"""

import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

from blinks_relay.errors import ValidationError
from blinks_relay.validation import validate_merchant_id

SCHEME = "BLINKS"
QR_DEFAULT_TTL = 600
NFC_FRESHNESS_WINDOW = 300


@dataclass
class QrPayload:
    uri: str
    expires_at: int


@dataclass
class NfcPayload:
    uri: str
    timestamp: int


@dataclass
class PaymentLink:
    """Parsed payment link."""

    merchant_id: str
    amount: str
    asset: str
    memo: Optional[str] = None
    expiry: Optional[int] = None
    timestamp: Optional[int] = None


def _now() -> int:
    return int(time.time())


def _build_uri(params: dict, memo: Optional[str]) -> str:
    if memo:
        params["memo"] = memo
    return f"{SCHEME}://pay?{urlencode(params)}"


def _check_fields(merchant_id: str, amount: str, asset_code: str) -> str:
    merchant_id = validate_merchant_id(merchant_id)
    if not amount or not str(amount).strip():
        raise ValidationError("amount is required")
    if not asset_code:
        raise ValidationError("asset is required")
    return merchant_id


def generate_qr_payload(
    merchant_id: str,
    amount: str,
    asset_code: str,
    memo: Optional[str] = None,
    ttl_seconds: int = QR_DEFAULT_TTL,
    now: Optional[int] = None,
) -> QrPayload:
    """Build a QR payment URI valid for ``ttl_seconds``."""
    merchant_id = _check_fields(merchant_id, amount, asset_code)
    if ttl_seconds <= 0:
        raise ValidationError("ttl_seconds must be positive")

    expires_at = (now if now is not None else _now()) + ttl_seconds
    params = {
        "merchant": merchant_id,
        "amount": str(amount),
        "asset": asset_code,
        "expiry": str(expires_at),
    }
    return QrPayload(uri=_build_uri(params, memo), expires_at=expires_at)


def generate_nfc_payload(
    merchant_id: str,
    amount: str,
    asset_code: str,
    memo: Optional[str] = None,
    now: Optional[int] = None,
) -> NfcPayload:
    """Build an NFC tap-to-pay URI stamped with the current time."""
    merchant_id = _check_fields(merchant_id, amount, asset_code)

    timestamp = now if now is not None else _now()
    params = {
        "merchant": merchant_id,
        "amount": str(amount),
        "asset": asset_code,
        "ts": str(timestamp),
    }
    return NfcPayload(uri=_build_uri(params, memo), timestamp=timestamp)


def validate_nfc_timestamp(
    timestamp: int,
    window_seconds: int = NFC_FRESHNESS_WINDOW,
    now: Optional[int] = None,
) -> bool:
    """Check that an NFC timestamp is within the freshness window (either side)."""
    current = now if now is not None else _now()
    return abs(current - timestamp) <= window_seconds


def parse_payment_link(uri: str) -> PaymentLink:
    """Parse a ``BLINKS://pay?...`` URI.

    Raises:
        ValidationError: Wrong scheme/action or missing fields
    """
    parts = urlsplit(uri)
    if parts.scheme.upper() != SCHEME or parts.netloc.lower() != "pay":
        raise ValidationError("Not a BLINKS payment link")

    params = dict(parse_qsl(parts.query))
    missing = [k for k in ("merchant", "amount", "asset") if not params.get(k)]
    if missing:
        raise ValidationError(f"Payment link is missing {', '.join(missing)}")

    try:
        expiry = int(params["expiry"]) if "expiry" in params else None
        timestamp = int(params["ts"]) if "ts" in params else None
    except ValueError as e:
        raise ValidationError("Payment link has a malformed expiry or timestamp") from e

    return PaymentLink(
        merchant_id=params["merchant"],
        amount=params["amount"],
        asset=params["asset"],
        memo=params.get("memo"),
        expiry=expiry,
        timestamp=timestamp,
    )
