"""Fee sponsorship.

Turns a user's unsigned envelope into a half-signed one whose network fee is
paid by the operator's fee-payer account:

1. Simulate the user's envelope (footprint, auth, resource fee)
2. Load the fee payer's sequence number
3. Rebuild with the fee payer as transaction source, copying the operations
   verbatim so their source and authorization still point at the user
4. Sign with the fee-payer key only

The user then adds their own signature client-side. NON-CUSTODIAL: no user
key is ever requested, loaded or transmitted here.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from stellar_sdk import Transaction, TransactionEnvelope

from blinks_relay.errors import FeePayerNotConfigured
from blinks_relay.signing.base import FeePayerSigner
from blinks_relay.stellar.rpc import LedgerRpc
from blinks_relay.stellar.simulator import ResourceSimulator

logger = logging.getLogger(__name__)


@dataclass
class SponsoredTransaction:
    """Half-signed, fee-sponsored transaction.

    Attributes:
        envelope_xdr: Rebuilt envelope carrying only the fee-payer signature
        fee_payer_address: Public address of the fee payer
        network_passphrase: Network the envelope is bound to
        tx_hash: Hash of the rebuilt transaction (hex)
        fee: Total fee (inclusion + resource) in stroops
        min_resource_fee: Resource fee reported by simulation
        original_xdr: User's unsigned envelope as received
        transaction_data: Simulated footprint XDR (None for classic ops)
        fee_payer_signature: Fee-payer signature bytes (hex)
    """

    envelope_xdr: str
    fee_payer_address: str
    network_passphrase: str
    tx_hash: str
    fee: int
    min_resource_fee: int
    original_xdr: str
    transaction_data: Optional[str] = None
    fee_payer_signature: Optional[str] = None


class FeeSponsor:
    """Rebuild and co-sign envelopes with the operator fee payer."""

    def __init__(
        self,
        rpc: LedgerRpc,
        simulator: ResourceSimulator,
        signer: Optional[FeePayerSigner],
        network_passphrase: str,
    ):
        self.rpc = rpc
        self.simulator = simulator
        self.signer = signer
        self.network_passphrase = network_passphrase

    @property
    def fee_payer_address(self) -> Optional[str]:
        return self.signer.public_key if self.signer else None

    async def sponsor(self, envelope: TransactionEnvelope) -> SponsoredTransaction:
        """Sponsor a user's unsigned envelope.

        Raises:
            FeePayerNotConfigured: No fee-payer key, or its account is missing
            SimulationError / SimulationUnexpectedError: Propagated from simulation
            TransportError: Network failure while simulating or loading the account
        """
        if self.signer is None:
            raise FeePayerNotConfigured("Fee payer is not configured")

        original_xdr = envelope.to_xdr()

        # Simulation failures stop here, before the fee payer is touched
        outcome = await self.simulator.simulate(envelope)
        prepared = outcome.prepared.transaction

        fee_payer = self.signer.public_key
        sequence = await self.rpc.get_account_sequence(fee_payer)

        rebuilt = Transaction(
            source=fee_payer,
            sequence=sequence + 1,
            fee=prepared.fee,
            operations=list(prepared.operations),
            memo=prepared.memo,
            preconditions=prepared.preconditions,
            soroban_data=prepared.soroban_data,
        )
        sponsored = TransactionEnvelope(rebuilt, self.network_passphrase)
        self.signer.sign(sponsored)

        tx_hash = sponsored.hash_hex()
        logger.info(
            f"Sponsored tx {tx_hash} for {_operation_source(prepared)}: "
            f"fee {prepared.fee}, fee payer seq {sequence + 1}"
        )

        return SponsoredTransaction(
            envelope_xdr=sponsored.to_xdr(),
            fee_payer_address=fee_payer,
            network_passphrase=self.network_passphrase,
            tx_hash=tx_hash,
            fee=prepared.fee,
            min_resource_fee=outcome.min_resource_fee,
            original_xdr=original_xdr,
            transaction_data=outcome.transaction_data,
            fee_payer_signature=sponsored.signatures[0].signature.hex(),
        )


def _operation_source(tx: Transaction) -> str:
    for op in tx.operations:
        if op.source is not None:
            return op.source.account_id
    return tx.source.account_id
