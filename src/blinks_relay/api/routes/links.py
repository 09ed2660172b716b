"""QR / NFC payment link endpoints."""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from blinks_relay.services.payment_links import (
    QR_DEFAULT_TTL,
    generate_nfc_payload,
    generate_qr_payload,
    validate_nfc_timestamp,
)

router = APIRouter()


class LinkBody(BaseModel):
    merchant_id: str = Field(..., min_length=1, max_length=64)
    amount: str = Field(..., min_length=1, max_length=40)
    asset_code: str = Field(default="XLM", min_length=1, max_length=70)
    memo: Optional[str] = Field(default=None, max_length=28)


class QrBody(LinkBody):
    ttl_seconds: int = Field(default=QR_DEFAULT_TTL, gt=0, le=86400)


class NfcCheckBody(BaseModel):
    timestamp: int


@router.post("/payment-links/qr")
async def create_qr_link(body: QrBody):
    """Generate a QR payment URI."""
    payload = generate_qr_payload(
        body.merchant_id, body.amount, body.asset_code, body.memo, body.ttl_seconds
    )
    return {"uri": payload.uri, "expires_at": payload.expires_at}


@router.post("/payment-links/nfc")
async def create_nfc_link(body: LinkBody):
    """Generate an NFC tap-to-pay URI."""
    payload = generate_nfc_payload(body.merchant_id, body.amount, body.asset_code, body.memo)
    return {"uri": payload.uri, "timestamp": payload.timestamp}


@router.post("/payment-links/nfc/validate")
async def validate_nfc_link(body: NfcCheckBody):
    """Check an NFC timestamp against the freshness window."""
    return {"valid": validate_nfc_timestamp(body.timestamp)}
