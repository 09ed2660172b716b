"""Tests for resource simulation and fee sponsorship."""

import pytest
from stellar_sdk import Asset, Keypair, TransactionEnvelope

from blinks_relay.errors import (
    FeePayerNotConfigured,
    SimulationError,
    SimulationUnexpectedError,
    TransportError,
)
from blinks_relay.stellar.builder import EnvelopeBuilder, InvocationArg
from blinks_relay.stellar.rpc import SimulationResult
from blinks_relay.stellar.simulator import ResourceSimulator
from blinks_relay.stellar.sponsorship import FeeSponsor

from conftest import FEE_PAYER_SEQUENCE, PASSPHRASE, RESOURCE_FEE


@pytest.fixture
def builder() -> EnvelopeBuilder:
    return EnvelopeBuilder(PASSPHRASE)


@pytest.fixture
def contract_envelope(builder, user_keypair, contract_id) -> TransactionEnvelope:
    user = user_keypair.public_key
    return builder.build_contract_call(
        user,
        contract_id,
        "pay",
        [
            InvocationArg("address", user),
            InvocationArg("bytes", "merchant-1"),
            InvocationArg("address", contract_id),
            InvocationArg("i128", 5_000_000),
            InvocationArg("i128", 5_000_000),
        ],
    )


@pytest.fixture
def sponsor(fake_rpc, signer) -> FeeSponsor:
    return FeeSponsor(fake_rpc, ResourceSimulator(fake_rpc), signer, PASSPHRASE)


class TestResourceSimulator:
    """Tests for simulation and assembly."""

    @pytest.mark.asyncio
    async def test_prepared_envelope_carries_resources(self, fake_rpc, contract_envelope):
        outcome = await ResourceSimulator(fake_rpc).simulate(contract_envelope)

        prepared = outcome.prepared.transaction
        assert outcome.min_resource_fee == RESOURCE_FEE
        assert prepared.fee == contract_envelope.transaction.fee + RESOURCE_FEE
        assert prepared.soroban_data is not None
        assert prepared.preconditions.time_bounds == contract_envelope.transaction.preconditions.time_bounds
        # Input envelope is left untouched
        assert contract_envelope.transaction.soroban_data is None

    @pytest.mark.asyncio
    async def test_simulation_error(self, fake_rpc, contract_envelope):
        fake_rpc.simulation = SimulationResult(error="HostError: contract trapped")

        with pytest.raises(SimulationError) as exc_info:
            await ResourceSimulator(fake_rpc).simulate(contract_envelope)
        assert exc_info.value.detail == "HostError: contract trapped"
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_missing_transaction_data(self, fake_rpc, contract_envelope):
        fake_rpc.simulation = SimulationResult(min_resource_fee=100)

        with pytest.raises(SimulationUnexpectedError):
            await ResourceSimulator(fake_rpc).simulate(contract_envelope)

    @pytest.mark.asyncio
    async def test_restore_required(self, fake_rpc, contract_envelope):
        fake_rpc.simulation.restore_required = True

        with pytest.raises(SimulationError):
            await ResourceSimulator(fake_rpc).simulate(contract_envelope)

    @pytest.mark.asyncio
    async def test_classic_payment_skips_simulation(self, fake_rpc, builder, user_keypair):
        envelope = builder.build_payment(
            user_keypair.public_key, Keypair.random().public_key, Asset.native(), 100
        )

        outcome = await ResourceSimulator(fake_rpc).simulate(envelope)

        assert fake_rpc.simulate_calls == []
        assert outcome.min_resource_fee == 0
        assert outcome.prepared.to_xdr() == envelope.to_xdr()


class TestFeeSponsor:
    """Tests for the fee-payer rebuild."""

    @pytest.mark.asyncio
    async def test_fee_payer_becomes_source(
        self, sponsor, contract_envelope, user_keypair, fee_payer_keypair
    ):
        """Source and sequence belong to the fee payer; the op stays the user's."""
        result = await sponsor.sponsor(contract_envelope)

        envelope = TransactionEnvelope.from_xdr(result.envelope_xdr, PASSPHRASE)
        tx = envelope.transaction
        assert tx.source.account_id == fee_payer_keypair.public_key
        assert tx.sequence == FEE_PAYER_SEQUENCE + 1
        assert tx.operations[0].source.account_id == user_keypair.public_key
        assert tx.fee == contract_envelope.transaction.fee + RESOURCE_FEE
        assert tx.soroban_data is not None
        assert result.fee_payer_address == fee_payer_keypair.public_key
        assert result.tx_hash == envelope.hash_hex()
        assert result.original_xdr == contract_envelope.to_xdr()

    @pytest.mark.asyncio
    async def test_exactly_one_fee_payer_signature(self, sponsor, contract_envelope, fee_payer_keypair):
        result = await sponsor.sponsor(contract_envelope)

        envelope = TransactionEnvelope.from_xdr(result.envelope_xdr, PASSPHRASE)
        assert len(envelope.signatures) == 1
        signature = envelope.signatures[0]
        assert signature.signature_hint == fee_payer_keypair.signature_hint()
        # Raises BadSignatureError if invalid
        Keypair.from_public_key(fee_payer_keypair.public_key).verify(
            envelope.hash(), signature.signature
        )

    @pytest.mark.asyncio
    async def test_validity_window_preserved(self, sponsor, contract_envelope):
        result = await sponsor.sponsor(contract_envelope)

        envelope = TransactionEnvelope.from_xdr(result.envelope_xdr, PASSPHRASE)
        assert (
            envelope.transaction.preconditions.time_bounds
            == contract_envelope.transaction.preconditions.time_bounds
        )

    @pytest.mark.asyncio
    async def test_simulation_error_skips_account_load(self, fake_rpc, sponsor, contract_envelope):
        """A refused simulation never touches the fee-payer account."""
        fake_rpc.simulation = SimulationResult(error="trapped")

        with pytest.raises(SimulationError):
            await sponsor.sponsor(contract_envelope)
        assert fake_rpc.account_calls == []

    @pytest.mark.asyncio
    async def test_no_signer(self, fake_rpc, contract_envelope):
        sponsor = FeeSponsor(fake_rpc, ResourceSimulator(fake_rpc), None, PASSPHRASE)

        with pytest.raises(FeePayerNotConfigured):
            await sponsor.sponsor(contract_envelope)
        assert fake_rpc.simulate_calls == []

    @pytest.mark.asyncio
    async def test_account_transport_error_propagates(self, fake_rpc, sponsor, contract_envelope):
        fake_rpc.account_error = TransportError("connection reset")

        with pytest.raises(TransportError):
            await sponsor.sponsor(contract_envelope)

    @pytest.mark.asyncio
    async def test_classic_payment_sponsored(
        self, fake_rpc, sponsor, builder, user_keypair, fee_payer_keypair
    ):
        envelope = builder.build_payment(
            user_keypair.public_key, Keypair.random().public_key, Asset.native(), 100, memo="hi"
        )

        result = await sponsor.sponsor(envelope)

        sponsored = TransactionEnvelope.from_xdr(result.envelope_xdr, PASSPHRASE)
        assert sponsored.transaction.source.account_id == fee_payer_keypair.public_key
        assert sponsored.transaction.operations[0].source.account_id == user_keypair.public_key
        assert sponsored.transaction.memo == envelope.transaction.memo
        assert result.min_resource_fee == 0
        assert fake_rpc.simulate_calls == []
