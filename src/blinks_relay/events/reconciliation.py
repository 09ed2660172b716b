"""Reconciliation of ledger events against payments and transfers.

Settled and failed events move the matching open record (PENDING or
PROCESSING) to its terminal status. Records are located, in order, by the id
the contract echoes back, by transaction hash, or by the most recent open
record for (merchant | recipient, payer).

The first terminal event wins: once a record is COMPLETED or FAILED it is no
longer open, so a later contradicting event finds nothing and is ignored.
Replaying an event is therefore a no-op.
"""

import logging
from enum import Enum
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from blinks_relay.events.models import (
    Channel,
    ChannelEvent,
    ContractEvent,
    FailedEvent,
    SettledEvent,
)
from blinks_relay.ledger.database import session_scope
from blinks_relay.ledger.models import OPEN_STATUSES, Payment, PaymentStatus, Transfer
from blinks_relay.ledger.repository import PaymentRepository
from blinks_relay.notifications.queue import NotificationJob, NotificationQueue

logger = logging.getLogger(__name__)

Record = Union[Payment, Transfer]


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"    # A record changed state
    IGNORED = "ignored"    # No open record matched
    NOOP = "noop"          # Event type needs no state change


class Reconciler:
    """Apply settlement events to the Payment/Transfer state machine."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        notifications: Optional[NotificationQueue] = None,
    ):
        self.session_factory = session_factory
        self.notifications = notifications

    async def apply(self, event: ContractEvent) -> ReconcileOutcome:
        """Apply one decoded event."""
        if not isinstance(event, (SettledEvent, FailedEvent)):
            logger.debug(f"No state change for {event.kind.value} event in ledger {event.ledger}")
            return ReconcileOutcome.NOOP

        job: Optional[NotificationJob] = None
        async with session_scope(self.session_factory) as session:
            repo = PaymentRepository(session)
            record = await self._locate(repo, event)
            if record is None:
                logger.info(
                    f"No open {event.channel.value} for {event.kind.value} event "
                    f"(payer={event.payer}, counterparty={event.counterparty}, "
                    f"ledger={event.ledger})"
                )
                return ReconcileOutcome.IGNORED

            if isinstance(event, SettledEvent):
                await self._settle(repo, record, event)
                job = self._completion_job(record, event)
            else:
                await repo.transition(
                    record, PaymentStatus.FAILED, error_message="Reported failed on-chain"
                )

        if job is not None:
            await self._notify(job)
        return ReconcileOutcome.APPLIED

    async def _locate(self, repo: PaymentRepository, event: ChannelEvent) -> Optional[Record]:
        is_payment = event.channel == Channel.PAYMENT

        if event.record_id:
            record = await (
                repo.get_payment(event.record_id)
                if is_payment
                else repo.get_transfer(event.record_id)
            )
            if record is not None:
                return record if record.status in OPEN_STATUSES else None

        if event.tx_hash:
            record = await (
                repo.get_payment_by_tx_hash(event.tx_hash)
                if is_payment
                else repo.get_transfer_by_tx_hash(event.tx_hash)
            )
            if record is not None:
                return record if record.status in OPEN_STATUSES else None

        if is_payment:
            return await repo.find_open_payment(event.counterparty, event.payer)
        return await repo.find_open_transfer(event.counterparty, event.payer)

    async def _settle(self, repo: PaymentRepository, record: Record, event: SettledEvent) -> None:
        if record.status == PaymentStatus.PENDING.value:
            await repo.transition(record, PaymentStatus.PROCESSING)
        await repo.transition(record, PaymentStatus.COMPLETED)

        if not record.tx_hash and event.reference:
            await repo.assign_tx_hash(record, event.reference)

        received = event.receive_amount if event.receive_amount is not None else event.amount
        if received is not None:
            record.receive_amount = received
        await repo.session.flush()

    @staticmethod
    def _completion_job(record: Record, event: SettledEvent) -> NotificationJob:
        if isinstance(record, Payment):
            return NotificationJob(
                user_id=record.from_address,
                title="Payment completed",
                message=f"Your payment to {record.merchant_id} has settled.",
                type="payment_completed",
                metadata={
                    "payment_id": record.id,
                    "merchant_id": record.merchant_id,
                    "tx_hash": record.tx_hash,
                    "amount": str(record.send_amount),
                    "ledger": event.ledger,
                },
            )
        return NotificationJob(
            user_id=record.to_user_id or record.to_address,
            title="Transfer received",
            message=f"You received a transfer from {record.from_address}.",
            type="transfer_completed",
            metadata={
                "transfer_id": record.id,
                "tx_hash": record.tx_hash,
                "amount": str(record.amount),
                "ledger": event.ledger,
            },
        )

    async def _notify(self, job: NotificationJob) -> None:
        if self.notifications is None:
            return
        try:
            queued = await self.notifications.enqueue(job)
        except Exception as e:
            logger.error(f"Notification enqueue failed for {job.type}: {e}")
            return
        if not queued:
            logger.warning(f"Notification {job.type} for {job.user_id} was not queued")
