"""Merchant payment endpoints."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator

from blinks_relay.api.deps import get_payment_service
from blinks_relay.ledger.models import Payment
from blinks_relay.services.payment_service import PaymentRequest, PaymentService

router = APIRouter()


class CreatePaymentBody(BaseModel):
    """Request to build a sponsored merchant payment."""

    from_address: str = Field(..., min_length=56, max_length=56, description="Payer account (G...)")
    merchant_id: str = Field(..., min_length=1, max_length=64, description="Merchant identifier")
    amount: int = Field(..., gt=0, description="Amount in the asset's smallest unit")
    asset_code: str = Field(default="XLM", min_length=1, max_length=12)
    asset_issuer: Optional[str] = Field(default=None, description="Issuer (required unless XLM)")
    min_receive: Optional[int] = Field(default=None, gt=0, description="Minimum amount received")
    memo: Optional[str] = Field(default=None, max_length=28)

    @field_validator("asset_code")
    @classmethod
    def normalize_asset(cls, v: str) -> str:
        return v.strip()


class SubmitBody(BaseModel):
    """User-countersigned envelope."""

    signed_xdr: str = Field(..., min_length=1, description="Envelope signed by fee payer and user")
    wait: bool = Field(default=True, description="Wait for finality before responding")


class SponsoredResponse(BaseModel):
    id: str
    xdr: str
    fee_payer_address: str
    network_passphrase: str
    tx_hash: str
    fee: int
    status: str


class SubmissionResponse(BaseModel):
    id: str
    tx_hash: str
    status: str
    ledger: Optional[int] = None


class PaymentResponse(BaseModel):
    id: str
    from_address: str
    merchant_id: str
    send_asset: str
    send_amount: str
    receive_amount: Optional[str] = None
    status: str
    memo: Optional[str] = None
    tx_hash: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            from_address=payment.from_address,
            merchant_id=payment.merchant_id,
            send_asset=payment.send_asset,
            send_amount=str(int(payment.send_amount)),
            receive_amount=(
                str(int(payment.receive_amount)) if payment.receive_amount is not None else None
            ),
            status=payment.status,
            memo=payment.memo,
            tx_hash=payment.tx_hash,
            created_at=payment.created_at,
            completed_at=payment.completed_at,
        )


@router.post("/payments", response_model=SponsoredResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    body: CreatePaymentBody,
    service: PaymentService = Depends(get_payment_service),
):
    """Build, simulate and sponsor a merchant payment.

    Returns the fee-payer-signed envelope; the client adds the user's
    signature and posts it to ``/payments/{id}/submit``.
    """
    intent = await service.create_payment(
        PaymentRequest(
            from_address=body.from_address,
            merchant_id=body.merchant_id,
            amount=body.amount,
            asset_code=body.asset_code,
            asset_issuer=body.asset_issuer,
            min_receive=body.min_receive,
            memo=body.memo,
        )
    )
    return SponsoredResponse(
        id=intent.record_id,
        xdr=intent.envelope_xdr,
        fee_payer_address=intent.fee_payer_address,
        network_passphrase=intent.network_passphrase,
        tx_hash=intent.tx_hash,
        fee=intent.fee,
        status=intent.status,
    )


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str, service: PaymentService = Depends(get_payment_service)):
    """Get payment status."""
    payment = await service.get_payment(payment_id)
    return PaymentResponse.from_model(payment)


@router.post("/payments/{payment_id}/submit", response_model=SubmissionResponse)
async def submit_payment(
    payment_id: str,
    body: SubmitBody,
    service: PaymentService = Depends(get_payment_service),
):
    """Submit the countersigned payment envelope."""
    outcome = await service.submit_payment(payment_id, body.signed_xdr, wait=body.wait)
    return SubmissionResponse(
        id=outcome.record_id,
        tx_hash=outcome.tx_hash,
        status=outcome.status,
        ledger=outcome.ledger,
    )
