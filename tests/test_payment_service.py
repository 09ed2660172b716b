"""Tests for payment/transfer orchestration."""

import pytest
from stellar_sdk import Keypair, TransactionEnvelope, scval
from stellar_sdk.operation import InvokeHostFunction

from blinks_relay.errors import (
    ComplianceRejected,
    ConfigurationError,
    FeePayerNotConfigured,
    InvalidStateTransition,
    NotFoundError,
    TransactionFailed,
    TransactionRejected,
    ValidationError,
)
from blinks_relay.ledger.models import PaymentStatus
from blinks_relay.safety import CustodialInputError
from blinks_relay.services.compliance import BlocklistCompliance
from blinks_relay.services.payment_service import PaymentRequest, PaymentService, TransferRequest
from blinks_relay.stellar.assets import AssetResolver
from blinks_relay.stellar.builder import EnvelopeBuilder
from blinks_relay.stellar.rpc import SendStatus, TxStatus
from blinks_relay.stellar.simulator import ResourceSimulator
from blinks_relay.stellar.sponsorship import FeeSponsor
from blinks_relay.stellar.submission import SubmissionPoller

from conftest import PASSPHRASE

MERCHANT = "merchant-42"


def _service(fake_rpc, signer, session_factory, router, compliance=None) -> PaymentService:
    return PaymentService(
        builder=EnvelopeBuilder(PASSPHRASE),
        sponsor=FeeSponsor(fake_rpc, ResourceSimulator(fake_rpc), signer, PASSPHRASE),
        poller=SubmissionPoller(fake_rpc, poll_interval=0.01, timeout=0.1),
        resolver=AssetResolver(PASSPHRASE),
        router_contract_id=router,
        compliance=compliance,
        session_factory=session_factory,
    )


@pytest.fixture
def service(fake_rpc, signer, session_factory, contract_id) -> PaymentService:
    return _service(fake_rpc, signer, session_factory, contract_id)


def _countersign(xdr: str, keypair: Keypair) -> str:
    envelope = TransactionEnvelope.from_xdr(xdr, PASSPHRASE)
    envelope.sign(keypair)
    return envelope.to_xdr()


class TestCreatePayment:
    """Tests for create_payment."""

    @pytest.mark.asyncio
    async def test_persists_pending_and_returns_sponsored_xdr(
        self, service, user_keypair, fee_payer_keypair
    ):
        intent = await service.create_payment(
            PaymentRequest(from_address=user_keypair.public_key, merchant_id=MERCHANT, amount=1_000)
        )

        assert intent.status == PaymentStatus.PENDING.value
        assert intent.fee_payer_address == fee_payer_keypair.public_key
        assert intent.network_passphrase == PASSPHRASE

        envelope = TransactionEnvelope.from_xdr(intent.envelope_xdr, PASSPHRASE)
        op = envelope.transaction.operations[0]
        assert isinstance(op, InvokeHostFunction)
        assert op.host_function.invoke_contract.function_name.sc_symbol == b"pay"
        assert len(envelope.signatures) == 1

        payment = await service.get_payment(intent.record_id)
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.merchant_id == MERCHANT
        assert payment.tx_hash == intent.tx_hash
        assert int(payment.min_receive) == 1_000

    @pytest.mark.asyncio
    async def test_large_amount(self, service, user_keypair):
        amount = 2**53 - 1
        intent = await service.create_payment(
            PaymentRequest(from_address=user_keypair.public_key, merchant_id=MERCHANT, amount=amount)
        )

        envelope = TransactionEnvelope.from_xdr(intent.envelope_xdr, PASSPHRASE)
        args = envelope.transaction.operations[0].host_function.invoke_contract.args
        assert scval.from_int128(args[3]) == amount
        payment = await service.get_payment(intent.record_id)
        assert int(payment.send_amount) == amount

    @pytest.mark.asyncio
    async def test_zero_amount_rejected(self, service, fake_rpc, user_keypair):
        with pytest.raises(ValidationError):
            await service.create_payment(
                PaymentRequest(from_address=user_keypair.public_key, merchant_id=MERCHANT, amount=0)
            )
        assert fake_rpc.simulate_calls == []

    @pytest.mark.asyncio
    async def test_secret_seed_rejected(self, service, user_keypair):
        """A secret key in any field is refused before anything else happens."""
        with pytest.raises(CustodialInputError):
            await service.create_payment(
                PaymentRequest(
                    from_address=user_keypair.public_key,
                    merchant_id=MERCHANT,
                    amount=10,
                    memo=user_keypair.secret,
                )
            )

    @pytest.mark.asyncio
    async def test_compliance_rejection(self, fake_rpc, signer, session_factory, contract_id, user_keypair):
        service = _service(
            fake_rpc,
            signer,
            session_factory,
            contract_id,
            compliance=BlocklistCompliance({MERCHANT}),
        )

        with pytest.raises(ComplianceRejected):
            await service.create_payment(
                PaymentRequest(from_address=user_keypair.public_key, merchant_id=MERCHANT, amount=10)
            )
        assert fake_rpc.simulate_calls == []

    @pytest.mark.asyncio
    async def test_missing_router_contract(self, fake_rpc, signer, session_factory, user_keypair):
        service = _service(fake_rpc, signer, session_factory, None)

        with pytest.raises(ConfigurationError):
            await service.create_payment(
                PaymentRequest(from_address=user_keypair.public_key, merchant_id=MERCHANT, amount=10)
            )

    @pytest.mark.asyncio
    async def test_no_fee_payer_creates_nothing(
        self, fake_rpc, session_factory, contract_id, user_keypair, payment_repo
    ):
        service = _service(fake_rpc, None, session_factory, contract_id)

        with pytest.raises(FeePayerNotConfigured):
            await service.create_payment(
                PaymentRequest(from_address=user_keypair.public_key, merchant_id=MERCHANT, amount=10)
            )
        assert await payment_repo.find_open_payment(MERCHANT, user_keypair.public_key) is None

    @pytest.mark.asyncio
    async def test_unknown_payment(self, service):
        with pytest.raises(NotFoundError):
            await service.get_payment("does-not-exist")


class TestSubmitPayment:
    """Tests for submitting a countersigned payment."""

    async def _create(self, service, user_keypair):
        return await service.create_payment(
            PaymentRequest(from_address=user_keypair.public_key, merchant_id=MERCHANT, amount=500)
        )

    @pytest.mark.asyncio
    async def test_confirmed_submission_completes(self, service, fake_rpc, user_keypair):
        intent = await self._create(service, user_keypair)
        signed = _countersign(intent.envelope_xdr, user_keypair)

        outcome = await service.submit_payment(intent.record_id, signed)

        assert outcome.status == PaymentStatus.COMPLETED.value
        assert outcome.tx_hash == intent.tx_hash
        assert outcome.ledger == 1_001
        assert len(fake_rpc.sent) == 1
        payment = await service.get_payment(intent.record_id)
        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.tx_hash == intent.tx_hash

    @pytest.mark.asyncio
    async def test_missing_user_signature(self, service, fake_rpc, user_keypair):
        intent = await self._create(service, user_keypair)

        with pytest.raises(ValidationError):
            await service.submit_payment(intent.record_id, intent.envelope_xdr)
        assert fake_rpc.sent == []

    @pytest.mark.asyncio
    async def test_garbage_xdr(self, service, user_keypair):
        intent = await self._create(service, user_keypair)

        with pytest.raises(ValidationError):
            await service.submit_payment(intent.record_id, "not-xdr")

    @pytest.mark.asyncio
    async def test_envelope_for_other_user(self, service, user_keypair):
        """An envelope sponsored for a different payer is refused."""
        intent = await self._create(service, user_keypair)
        other = Keypair.random()
        other_intent = await self._create(service, other)

        with pytest.raises(ValidationError):
            await service.submit_payment(
                intent.record_id, _countersign(other_intent.envelope_xdr, other)
            )

    @pytest.mark.asyncio
    async def test_envelope_for_other_payment_of_same_payer(self, service, fake_rpc, user_keypair):
        """A countersigned envelope only settles the payment it was built for."""
        small = await service.create_payment(
            PaymentRequest(from_address=user_keypair.public_key, merchant_id="merchant-a", amount=5)
        )
        large = await service.create_payment(
            PaymentRequest(
                from_address=user_keypair.public_key, merchant_id="merchant-b", amount=999_999
            )
        )

        with pytest.raises(ValidationError):
            await service.submit_payment(
                large.record_id, _countersign(small.envelope_xdr, user_keypair)
            )

        assert fake_rpc.sent == []
        assert (await service.get_payment(large.record_id)).status == PaymentStatus.PENDING.value
        assert (await service.get_payment(small.record_id)).status == PaymentStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_rejected_marks_failed(self, service, fake_rpc, user_keypair):
        fake_rpc.send_status = SendStatus.ERROR
        intent = await self._create(service, user_keypair)

        with pytest.raises(TransactionRejected):
            await service.submit_payment(intent.record_id, _countersign(intent.envelope_xdr, user_keypair))

        payment = await service.get_payment(intent.record_id)
        assert payment.status == PaymentStatus.FAILED.value

    @pytest.mark.asyncio
    async def test_failed_on_ledger_marks_failed(self, service, fake_rpc, user_keypair):
        fake_rpc.tx_statuses = [TxStatus.FAILED]
        intent = await self._create(service, user_keypair)

        with pytest.raises(TransactionFailed):
            await service.submit_payment(intent.record_id, _countersign(intent.envelope_xdr, user_keypair))

        payment = await service.get_payment(intent.record_id)
        assert payment.status == PaymentStatus.FAILED.value

    @pytest.mark.asyncio
    async def test_timeout_leaves_processing(self, service, fake_rpc, user_keypair):
        fake_rpc.tx_statuses = [TxStatus.NOT_FOUND]
        intent = await self._create(service, user_keypair)

        outcome = await service.submit_payment(
            intent.record_id, _countersign(intent.envelope_xdr, user_keypair)
        )

        assert outcome.status == PaymentStatus.PROCESSING.value
        payment = await service.get_payment(intent.record_id)
        assert payment.status == PaymentStatus.PROCESSING.value

    @pytest.mark.asyncio
    async def test_resubmit_after_completion_rejected(self, service, user_keypair):
        intent = await self._create(service, user_keypair)
        signed = _countersign(intent.envelope_xdr, user_keypair)
        await service.submit_payment(intent.record_id, signed)

        with pytest.raises(InvalidStateTransition):
            await service.submit_payment(intent.record_id, signed)

    @pytest.mark.asyncio
    async def test_no_wait(self, service, fake_rpc, user_keypair):
        intent = await self._create(service, user_keypair)

        outcome = await service.submit_payment(
            intent.record_id, _countersign(intent.envelope_xdr, user_keypair), wait=False
        )

        assert outcome.status == PaymentStatus.PROCESSING.value
        assert fake_rpc.status_calls == []


class TestTransfers:
    """Tests for peer-to-peer transfers."""

    @pytest.mark.asyncio
    async def test_create_and_submit(self, service, fake_rpc, user_keypair, fee_payer_keypair):
        recipient = Keypair.random().public_key
        intent = await service.create_transfer(
            TransferRequest(
                from_address=user_keypair.public_key,
                to_address=recipient,
                amount=25_000_000,
                memo="lunch",
            )
        )

        envelope = TransactionEnvelope.from_xdr(intent.envelope_xdr, PASSPHRASE)
        assert envelope.transaction.source.account_id == fee_payer_keypair.public_key
        assert fake_rpc.simulate_calls == []

        outcome = await service.submit_transfer(
            intent.record_id, _countersign(intent.envelope_xdr, user_keypair)
        )
        assert outcome.status == PaymentStatus.COMPLETED.value

        transfer = await service.get_transfer(intent.record_id)
        assert transfer.to_address == recipient
        assert transfer.status == PaymentStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_self_transfer_rejected(self, service, user_keypair):
        with pytest.raises(ValidationError):
            await service.create_transfer(
                TransferRequest(
                    from_address=user_keypair.public_key,
                    to_address=user_keypair.public_key,
                    amount=1,
                )
            )
