"""Peer-to-peer transfer endpoints."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from blinks_relay.api.deps import get_payment_service
from blinks_relay.api.routes.payments import SponsoredResponse, SubmissionResponse, SubmitBody
from blinks_relay.ledger.models import Transfer
from blinks_relay.services.payment_service import PaymentService, TransferRequest

router = APIRouter()


class CreateTransferBody(BaseModel):
    """Request to build a sponsored transfer."""

    from_address: str = Field(..., min_length=56, max_length=56, description="Sender (G...)")
    to_address: str = Field(..., min_length=56, max_length=56, description="Recipient (G...)")
    amount: int = Field(..., gt=0, description="Amount in stroops")
    asset_code: str = Field(default="XLM", min_length=1, max_length=12)
    asset_issuer: Optional[str] = None
    memo: Optional[str] = Field(default=None, max_length=28)
    from_user_id: Optional[str] = Field(default=None, max_length=64)
    to_user_id: Optional[str] = Field(default=None, max_length=64)


class TransferResponse(BaseModel):
    id: str
    from_address: str
    to_address: str
    asset: str
    amount: str
    status: str
    memo: Optional[str] = None
    tx_hash: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, transfer: Transfer) -> "TransferResponse":
        return cls(
            id=transfer.id,
            from_address=transfer.from_address,
            to_address=transfer.to_address,
            asset=transfer.asset,
            amount=str(int(transfer.amount)),
            status=transfer.status,
            memo=transfer.memo,
            tx_hash=transfer.tx_hash,
            created_at=transfer.created_at,
            completed_at=transfer.completed_at,
        )


@router.post("/transfers", response_model=SponsoredResponse, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    body: CreateTransferBody,
    service: PaymentService = Depends(get_payment_service),
):
    """Build and sponsor a classic payment between two accounts."""
    intent = await service.create_transfer(
        TransferRequest(
            from_address=body.from_address,
            to_address=body.to_address,
            amount=body.amount,
            asset_code=body.asset_code.strip(),
            asset_issuer=body.asset_issuer,
            memo=body.memo,
            from_user_id=body.from_user_id,
            to_user_id=body.to_user_id,
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


@router.get("/transfers/{transfer_id}", response_model=TransferResponse)
async def get_transfer(transfer_id: str, service: PaymentService = Depends(get_payment_service)):
    transfer = await service.get_transfer(transfer_id)
    return TransferResponse.from_model(transfer)


@router.post("/transfers/{transfer_id}/submit", response_model=SubmissionResponse)
async def submit_transfer(
    transfer_id: str,
    body: SubmitBody,
    service: PaymentService = Depends(get_payment_service),
):
    outcome = await service.submit_transfer(transfer_id, body.signed_xdr, wait=body.wait)
    return SubmissionResponse(
        id=outcome.record_id,
        tx_hash=outcome.tx_hash,
        status=outcome.status,
        ledger=outcome.ledger,
    )
