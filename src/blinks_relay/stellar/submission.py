"""Submission and finality polling.

Sends a fully-signed envelope and polls its status until it reaches a
terminal state or the overall deadline passes. A timeout is reported as its
own outcome and is not treated as a failure: the transaction may still land,
and the event loop will reconcile it if it does.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from stellar_sdk import TransactionEnvelope

from blinks_relay.errors import TransactionFailed, TransactionRejected, TransportError
from blinks_relay.stellar.rpc import LedgerRpc, SendStatus, TxStatus

logger = logging.getLogger(__name__)


class SubmissionStatus(str, Enum):
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"


@dataclass
class SubmissionResult:
    tx_hash: str
    status: SubmissionStatus
    ledger: Optional[int] = None

    @property
    def confirmed(self) -> bool:
        return self.status == SubmissionStatus.CONFIRMED


class SubmissionPoller:
    """Submit signed envelopes and wait for finality."""

    def __init__(self, rpc: LedgerRpc, poll_interval: float = 2.0, timeout: float = 60.0):
        self.rpc = rpc
        self.poll_interval = poll_interval
        self.timeout = timeout

    async def submit(self, envelope: TransactionEnvelope) -> str:
        """Send an envelope and return its hash once the network accepted it.

        Raises:
            TransactionRejected: The network refused the transaction outright
            TransportError: The network asked to retry later, or was unreachable
        """
        result = await self.rpc.send_transaction(envelope)

        if result.status == SendStatus.ERROR:
            logger.warning(f"Transaction {result.tx_hash} rejected: {result.error_result_xdr}")
            raise TransactionRejected(
                f"Transaction {result.tx_hash} rejected", detail=result.error_result_xdr
            )
        if result.status == SendStatus.TRY_AGAIN_LATER:
            raise TransportError(f"Network busy, retry {result.tx_hash} later")

        if result.status == SendStatus.DUPLICATE:
            logger.info(f"Transaction {result.tx_hash} already submitted")
        else:
            logger.info(f"Transaction {result.tx_hash} submitted")
        return result.tx_hash

    async def wait_for_finality(
        self, tx_hash: str, timeout: Optional[float] = None
    ) -> SubmissionResult:
        """Poll until the transaction succeeds, fails, or the deadline passes.

        NOT_FOUND and transient transport errors are retried until the deadline.
        A status call still in flight at the deadline is cancelled.

        Raises:
            TransactionFailed: The transaction was included but failed
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (self.timeout if timeout is None else timeout)

        while True:
            try:
                status = await asyncio.wait_for(
                    self.rpc.get_transaction(tx_hash), max(deadline - loop.time(), 0)
                )
            except asyncio.TimeoutError:
                logger.warning(f"Transaction {tx_hash} not final before deadline")
                return SubmissionResult(tx_hash=tx_hash, status=SubmissionStatus.TIMED_OUT)
            except TransportError as e:
                logger.warning(f"Status poll for {tx_hash} failed: {e}")
            else:
                if status.status == TxStatus.SUCCESS:
                    logger.info(f"Transaction {tx_hash} confirmed in ledger {status.ledger}")
                    return SubmissionResult(
                        tx_hash=tx_hash,
                        status=SubmissionStatus.CONFIRMED,
                        ledger=status.ledger,
                    )
                if status.status == TxStatus.FAILED:
                    logger.warning(f"Transaction {tx_hash} failed in ledger {status.ledger}")
                    raise TransactionFailed(
                        f"Transaction {tx_hash} failed", detail=status.result_xdr
                    )

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(f"Transaction {tx_hash} not final before deadline")
                return SubmissionResult(tx_hash=tx_hash, status=SubmissionStatus.TIMED_OUT)
            await asyncio.sleep(min(self.poll_interval, remaining))

    async def submit_and_wait(
        self, envelope: TransactionEnvelope, timeout: Optional[float] = None
    ) -> SubmissionResult:
        tx_hash = await self.submit(envelope)
        return await self.wait_for_finality(tx_hash, timeout=timeout)
