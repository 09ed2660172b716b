"""Resource simulation.

Runs a built envelope through the network's simulation endpoint and merges
the result back in: the resource footprint (soroban transaction data), the
authorization entries recorded for the user, and the minimum resource fee on
top of the inclusion fee. The returned envelope is a fresh copy; the input is
never mutated.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from stellar_sdk import TransactionEnvelope
from stellar_sdk.operation import InvokeHostFunction
from stellar_sdk.xdr import SorobanAuthorizationEntry, SorobanTransactionData

from blinks_relay.errors import SimulationError, SimulationUnexpectedError, ValidationError
from blinks_relay.safety import redact_secrets
from blinks_relay.stellar.rpc import LedgerRpc

logger = logging.getLogger(__name__)


@dataclass
class SimulationOutcome:
    """Result of simulating an envelope.

    Attributes:
        prepared: Envelope with footprint, auth and resource fee merged in
        min_resource_fee: Minimum resource fee in stroops (0 for classic ops)
        transaction_data: SorobanTransactionData XDR, None for classic ops
        auth: Authorization entry XDRs returned by simulation
        latest_ledger: Ledger the simulation ran against
    """

    prepared: TransactionEnvelope
    min_resource_fee: int = 0
    transaction_data: Optional[str] = None
    auth: list[str] = field(default_factory=list)
    latest_ledger: Optional[int] = None


def is_host_function_envelope(envelope: TransactionEnvelope) -> bool:
    return any(isinstance(op, InvokeHostFunction) for op in envelope.transaction.operations)


def copy_envelope(envelope: TransactionEnvelope) -> TransactionEnvelope:
    return TransactionEnvelope.from_xdr(envelope.to_xdr(), envelope.network_passphrase)


class ResourceSimulator:
    """Simulate envelopes and assemble the prepared result."""

    def __init__(self, rpc: LedgerRpc):
        self.rpc = rpc

    async def simulate(self, envelope: TransactionEnvelope) -> SimulationOutcome:
        """Simulate and prepare an envelope.

        Classic envelopes (no host-function operation) need no simulation and
        come back unchanged with a zero resource fee.

        Raises:
            SimulationError: The network refused the call (not retryable)
            SimulationUnexpectedError: The response was malformed or incomplete
            TransportError: The network could not be reached (retryable)
        """
        if not is_host_function_envelope(envelope):
            return SimulationOutcome(prepared=copy_envelope(envelope))

        if len(envelope.transaction.operations) != 1:
            raise ValidationError("Contract invocations must contain exactly one operation")

        result = await self.rpc.simulate(envelope)

        if result.error:
            logger.debug(f"Simulation error detail: {redact_secrets(result.error)}")
            raise SimulationError("Simulation rejected the transaction", detail=result.error)
        if result.restore_required:
            raise SimulationError("Contract state is archived and must be restored first")
        if not result.transaction_data or result.min_resource_fee is None:
            raise SimulationUnexpectedError("Simulation response is missing resource data")

        try:
            soroban_data = SorobanTransactionData.from_xdr(result.transaction_data)
            auth_entries = [SorobanAuthorizationEntry.from_xdr(a) for a in result.auth]
        except Exception as e:
            raise SimulationUnexpectedError(f"Simulation returned undecodable XDR: {e}") from e

        prepared = copy_envelope(envelope)
        tx = prepared.transaction
        op = tx.operations[0]
        # Keep caller-supplied auth; otherwise use what simulation recorded
        if not op.auth:
            op.auth = auth_entries
        tx.soroban_data = soroban_data
        tx.fee = envelope.transaction.fee + result.min_resource_fee

        logger.info(
            f"Simulated {prepared.hash_hex()[:12]}...: resource fee {result.min_resource_fee}, "
            f"{len(auth_entries)} auth entries"
        )
        return SimulationOutcome(
            prepared=prepared,
            min_resource_fee=result.min_resource_fee,
            transaction_data=result.transaction_data,
            auth=list(result.auth),
            latest_ledger=result.latest_ledger,
        )
