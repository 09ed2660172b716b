"""Stellar/Soroban transaction pipeline.

Builder -> simulator -> sponsor -> (user signs) -> submission poller.
"""

from blinks_relay.stellar.assets import AssetResolver, ResolvedAsset
from blinks_relay.stellar.builder import EnvelopeBuilder, InvocationArg
from blinks_relay.stellar.rpc import LedgerRpc, RawEvent, SorobanLedgerRpc
from blinks_relay.stellar.simulator import ResourceSimulator, SimulationOutcome
from blinks_relay.stellar.sponsorship import FeeSponsor, SponsoredTransaction
from blinks_relay.stellar.submission import SubmissionPoller, SubmissionResult, SubmissionStatus

__all__ = [
    "AssetResolver",
    "ResolvedAsset",
    "EnvelopeBuilder",
    "InvocationArg",
    "LedgerRpc",
    "RawEvent",
    "SorobanLedgerRpc",
    "ResourceSimulator",
    "SimulationOutcome",
    "FeeSponsor",
    "SponsoredTransaction",
    "SubmissionPoller",
    "SubmissionResult",
    "SubmissionStatus",
]
