"""Payment and transfer orchestration.

Flow for a new payment:
1. Validate input and run the compliance pre-check
2. Resolve the send asset to its contract id
3. Build the PaymentRouter ``pay`` invocation for the user
4. Simulate and sponsor (fee payer signs the outer envelope)
5. Persist a PENDING row keyed by the envelope hash
6. Return the half-signed XDR for the user to countersign

Transfers follow the same path with a classic payment operation. Once the
user has signed, ``submit_payment`` / ``submit_transfer`` check the signed
envelope against that hash, move the row to PROCESSING and wait for finality.

The service NEVER touches user private keys.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from stellar_sdk import TransactionEnvelope

from blinks_relay.errors import (
    ConfigurationError,
    FeePayerNotConfigured,
    InvalidStateTransition,
    NotFoundError,
    TransactionFailed,
    TransactionRejected,
    ValidationError,
)
from blinks_relay.ledger.database import session_scope
from blinks_relay.ledger.models import OPEN_STATUSES, Payment, PaymentStatus, Transfer
from blinks_relay.ledger.repository import PaymentRepository
from blinks_relay.safety import reject_secret_inputs
from blinks_relay.services.compliance import (
    AllowAllCompliance,
    ComplianceChecker,
    ComplianceSubject,
)
from blinks_relay.stellar.assets import AssetResolver
from blinks_relay.stellar.builder import EnvelopeBuilder, InvocationArg
from blinks_relay.stellar.sponsorship import FeeSponsor
from blinks_relay.stellar.submission import SubmissionPoller, SubmissionStatus
from blinks_relay.validation import validate_account_address, validate_amount, validate_merchant_id

logger = logging.getLogger(__name__)

Record = Union[Payment, Transfer]

PAY_FUNCTION = "pay"


@dataclass
class PaymentRequest:
    from_address: str
    merchant_id: str
    amount: int
    asset_code: str = "XLM"
    asset_issuer: Optional[str] = None
    min_receive: Optional[int] = None
    memo: Optional[str] = None


@dataclass
class TransferRequest:
    from_address: str
    to_address: str
    amount: int
    asset_code: str = "XLM"
    asset_issuer: Optional[str] = None
    memo: Optional[str] = None
    from_user_id: Optional[str] = None
    to_user_id: Optional[str] = None


@dataclass
class SponsoredIntent:
    """Half-signed transaction handed back to the user.

    Attributes:
        record_id: Payment or transfer id
        envelope_xdr: Fee-payer-signed envelope awaiting the user's signature
        fee_payer_address: Fee payer public address
        network_passphrase: Network the envelope is bound to
        tx_hash: Hash of the envelope (unchanged by additional signatures)
        fee: Total fee in stroops paid by the fee payer
        status: Always PENDING at creation
    """

    record_id: str
    envelope_xdr: str
    fee_payer_address: str
    network_passphrase: str
    tx_hash: str
    fee: int
    status: str = PaymentStatus.PENDING.value


@dataclass
class SubmissionOutcome:
    record_id: str
    tx_hash: str
    status: str
    ledger: Optional[int] = None


class PaymentService:
    """Create, sponsor and submit payments and transfers."""

    def __init__(
        self,
        builder: EnvelopeBuilder,
        sponsor: FeeSponsor,
        poller: SubmissionPoller,
        resolver: AssetResolver,
        router_contract_id: Optional[str],
        compliance: Optional[ComplianceChecker] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.builder = builder
        self.sponsor = sponsor
        self.poller = poller
        self.resolver = resolver
        self.router_contract_id = router_contract_id
        self.compliance = compliance or AllowAllCompliance()
        self.session_factory = session_factory

    # Creation
    async def create_payment(self, request: PaymentRequest) -> SponsoredIntent:
        """Build, sponsor and persist a merchant payment.

        Raises:
            ValidationError: Bad address, amount, asset or merchant id
            ComplianceRejected: Pre-check refused the request
            ConfigurationError: PaymentRouter contract not configured
            FeePayerNotConfigured / SimulationError / TransportError: From sponsorship
        """
        reject_secret_inputs(
            from_address=request.from_address,
            merchant_id=request.merchant_id,
            memo=request.memo,
        )
        validate_account_address(request.from_address, "from_address")
        merchant_id = validate_merchant_id(request.merchant_id)
        amount = validate_amount(request.amount, "amount")
        min_receive = validate_amount(
            request.min_receive if request.min_receive is not None else amount, "min_receive"
        )
        if not self.router_contract_id:
            raise ConfigurationError("PAYMENT_ROUTER_CONTRACT is not configured")

        asset = self.resolver.resolve(request.asset_code, request.asset_issuer)
        await self.compliance.ensure_allowed(
            ComplianceSubject(
                kind="payment",
                from_address=request.from_address,
                counterparty=merchant_id,
                asset=asset.canonical,
                amount=amount,
            )
        )

        envelope = self.builder.build_contract_call(
            source_address=request.from_address,
            contract_id=self.router_contract_id,
            function_name=PAY_FUNCTION,
            args=[
                InvocationArg("address", request.from_address),
                InvocationArg("bytes", merchant_id),
                InvocationArg("address", asset.contract_id),
                InvocationArg("i128", amount),
                InvocationArg("i128", min_receive),
            ],
        )
        sponsored = await self.sponsor.sponsor(envelope)

        async with session_scope(self.session_factory) as session:
            repo = PaymentRepository(session)
            # An identical request yields the same envelope; reuse its row
            payment = await repo.get_payment_by_tx_hash(sponsored.tx_hash)
            if payment is None:
                payment = await repo.create_payment(
                    from_address=request.from_address,
                    merchant_id=merchant_id,
                    send_asset=asset.canonical,
                    send_amount=amount,
                    min_receive=min_receive,
                    memo=request.memo,
                )
                await repo.assign_tx_hash(payment, sponsored.tx_hash)
            payment_id = payment.id

        logger.info(
            f"Payment {payment_id} created: {request.from_address} -> {merchant_id}, "
            f"{amount} {asset.canonical}"
        )
        return SponsoredIntent(
            record_id=payment_id,
            envelope_xdr=sponsored.envelope_xdr,
            fee_payer_address=sponsored.fee_payer_address,
            network_passphrase=sponsored.network_passphrase,
            tx_hash=sponsored.tx_hash,
            fee=sponsored.fee,
        )

    async def create_transfer(self, request: TransferRequest) -> SponsoredIntent:
        """Build, sponsor and persist a peer-to-peer transfer."""
        reject_secret_inputs(
            from_address=request.from_address,
            to_address=request.to_address,
            memo=request.memo,
        )
        validate_account_address(request.from_address, "from_address")
        validate_account_address(request.to_address, "to_address")
        amount = validate_amount(request.amount, "amount")
        if request.from_address == request.to_address:
            raise ValidationError("Cannot transfer to the same account")

        asset = self.resolver.resolve(request.asset_code, request.asset_issuer)
        await self.compliance.ensure_allowed(
            ComplianceSubject(
                kind="transfer",
                from_address=request.from_address,
                counterparty=request.to_address,
                asset=asset.canonical,
                amount=amount,
            )
        )

        envelope = self.builder.build_payment(
            source_address=request.from_address,
            destination=request.to_address,
            asset=asset.asset,
            amount=amount,
            memo=request.memo,
        )
        sponsored = await self.sponsor.sponsor(envelope)

        async with session_scope(self.session_factory) as session:
            repo = PaymentRepository(session)
            transfer = await repo.get_transfer_by_tx_hash(sponsored.tx_hash)
            if transfer is None:
                transfer = await repo.create_transfer(
                    from_address=request.from_address,
                    to_address=request.to_address,
                    asset=asset.canonical,
                    amount=amount,
                    from_user_id=request.from_user_id,
                    to_user_id=request.to_user_id,
                    memo=request.memo,
                )
                await repo.assign_tx_hash(transfer, sponsored.tx_hash)
            transfer_id = transfer.id

        logger.info(
            f"Transfer {transfer_id} created: {request.from_address} -> {request.to_address}, "
            f"{amount} {asset.canonical}"
        )
        return SponsoredIntent(
            record_id=transfer_id,
            envelope_xdr=sponsored.envelope_xdr,
            fee_payer_address=sponsored.fee_payer_address,
            network_passphrase=sponsored.network_passphrase,
            tx_hash=sponsored.tx_hash,
            fee=sponsored.fee,
        )

    # Lookup
    async def get_payment(self, payment_id: str) -> Payment:
        async with session_scope(self.session_factory) as session:
            payment = await PaymentRepository(session).get_payment(payment_id)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        return payment

    async def get_transfer(self, transfer_id: str) -> Transfer:
        async with session_scope(self.session_factory) as session:
            transfer = await PaymentRepository(session).get_transfer(transfer_id)
        if transfer is None:
            raise NotFoundError(f"Transfer {transfer_id} not found")
        return transfer

    # Submission
    async def submit_payment(
        self, payment_id: str, signed_xdr: str, wait: bool = True
    ) -> SubmissionOutcome:
        """Submit a user-countersigned payment envelope."""
        return await self._submit(Payment, payment_id, signed_xdr, wait)

    async def submit_transfer(
        self, transfer_id: str, signed_xdr: str, wait: bool = True
    ) -> SubmissionOutcome:
        """Submit a user-countersigned transfer envelope."""
        return await self._submit(Transfer, transfer_id, signed_xdr, wait)

    async def _load(self, repo: PaymentRepository, model: type, record_id: str) -> Record:
        record = await (
            repo.get_payment(record_id) if model is Payment else repo.get_transfer(record_id)
        )
        if record is None:
            raise NotFoundError(f"{model.__name__} {record_id} not found")
        return record

    def _verify_envelope(self, record: Record, signed_xdr: str) -> TransactionEnvelope:
        signer = self.sponsor.signer
        if signer is None:
            raise FeePayerNotConfigured("Fee payer is not configured")

        try:
            envelope = TransactionEnvelope.from_xdr(signed_xdr, self.sponsor.network_passphrase)
        except Exception as e:
            raise ValidationError("signed_xdr is not a valid transaction envelope") from e

        # Signatures do not change the hash; any other edit does
        if record.tx_hash is None or envelope.hash_hex() != record.tx_hash:
            raise ValidationError("Envelope does not belong to this request")

        tx = envelope.transaction
        if tx.source.account_id != signer.public_key:
            raise ValidationError("Envelope is not sponsored by this relay")
        if not signer.verify(envelope):
            raise ValidationError("Envelope is missing the fee-payer signature")
        if len(envelope.signatures) < 2:
            raise ValidationError("Envelope is missing the user's signature")
        op_sources = {op.source.account_id for op in tx.operations if op.source is not None}
        if op_sources != {record.from_address}:
            raise ValidationError("Envelope does not belong to this request")
        return envelope

    async def _submit(
        self, model: type, record_id: str, signed_xdr: str, wait: bool
    ) -> SubmissionOutcome:
        async with session_scope(self.session_factory) as session:
            repo = PaymentRepository(session)
            record = await self._load(repo, model, record_id)
            envelope = self._verify_envelope(record, signed_xdr)
            tx_hash = envelope.hash_hex()

            if record.status == PaymentStatus.PENDING.value:
                await repo.assign_tx_hash(record, tx_hash)
                await repo.transition(record, PaymentStatus.PROCESSING)
            elif record.status == PaymentStatus.PROCESSING.value and record.tx_hash == tx_hash:
                logger.info(f"Resubmitting {model.__name__} {record_id} ({tx_hash})")
            else:
                raise InvalidStateTransition(
                    f"{model.__name__} {record_id} cannot be submitted in status {record.status}"
                )

        try:
            await self.poller.submit(envelope)
        except TransactionRejected as e:
            await self._finish(model, record_id, PaymentStatus.FAILED, str(e))
            raise

        if not wait:
            return SubmissionOutcome(record_id, tx_hash, PaymentStatus.PROCESSING.value)

        try:
            result = await self.poller.wait_for_finality(tx_hash)
        except TransactionFailed as e:
            await self._finish(model, record_id, PaymentStatus.FAILED, str(e))
            raise

        if result.status == SubmissionStatus.TIMED_OUT:
            # Left PROCESSING; the event loop settles it if it lands
            return SubmissionOutcome(record_id, tx_hash, PaymentStatus.PROCESSING.value)

        status = await self._finish(model, record_id, PaymentStatus.COMPLETED)
        return SubmissionOutcome(record_id, tx_hash, status, ledger=result.ledger)

    async def _finish(
        self,
        model: type,
        record_id: str,
        status: PaymentStatus,
        error_message: Optional[str] = None,
    ) -> str:
        """Apply a terminal status unless the record already reached one."""
        async with session_scope(self.session_factory) as session:
            repo = PaymentRepository(session)
            record = await self._load(repo, model, record_id)
            if record.status in OPEN_STATUSES:
                await repo.transition(record, status, error_message=error_message)
            return record.status
