"""Application services: payment orchestration, compliance and payment links."""

from blinks_relay.services.compliance import (
    AllowAllCompliance,
    BlocklistCompliance,
    ComplianceChecker,
    ComplianceSubject,
)
from blinks_relay.services.payment_service import (
    PaymentRequest,
    PaymentService,
    SponsoredIntent,
    SubmissionOutcome,
    TransferRequest,
)

__all__ = [
    "AllowAllCompliance",
    "BlocklistCompliance",
    "ComplianceChecker",
    "ComplianceSubject",
    "PaymentRequest",
    "PaymentService",
    "SponsoredIntent",
    "SubmissionOutcome",
    "TransferRequest",
]
