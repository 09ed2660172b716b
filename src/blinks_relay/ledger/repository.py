"""Repository for payment, transfer and cursor persistence."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blinks_relay.errors import InvalidStateTransition
from blinks_relay.ledger.models import (
    OPEN_STATUSES,
    EventCursorCheckpoint,
    Payment,
    PaymentStatus,
    Transfer,
)

logger = logging.getLogger(__name__)

Record = Union[Payment, Transfer]

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    PaymentStatus.PENDING.value: {PaymentStatus.PROCESSING.value, PaymentStatus.FAILED.value},
    PaymentStatus.PROCESSING.value: {PaymentStatus.COMPLETED.value, PaymentStatus.FAILED.value},
    PaymentStatus.COMPLETED.value: set(),
    PaymentStatus.FAILED.value: set(),
}


def _status_value(status: Union[str, PaymentStatus]) -> str:
    return status.value if isinstance(status, PaymentStatus) else str(status)


class PaymentRepository:
    """Repository for Payment/Transfer aggregates and the event cursor."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Payment operations
    async def create_payment(
        self,
        from_address: str,
        merchant_id: str,
        send_asset: str,
        send_amount: int,
        min_receive: Optional[int] = None,
        memo: Optional[str] = None,
    ) -> Payment:
        """Persist a new PENDING payment."""
        payment = Payment(
            from_address=from_address,
            merchant_id=merchant_id,
            send_asset=send_asset,
            send_amount=Decimal(send_amount),
            min_receive=Decimal(min_receive) if min_receive is not None else None,
            memo=memo,
            status=PaymentStatus.PENDING.value,
        )
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.id == payment_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_payment_by_tx_hash(self, tx_hash: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.tx_hash == tx_hash)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_open_payment(self, merchant_id: str, from_address: str) -> Optional[Payment]:
        """Most recent PENDING/PROCESSING payment for (merchant, payer)."""
        stmt = (
            select(Payment)
            .where(
                Payment.merchant_id == merchant_id,
                Payment.from_address == from_address,
                Payment.status.in_(OPEN_STATUSES),
            )
            .order_by(Payment.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # Transfer operations
    async def create_transfer(
        self,
        from_address: str,
        to_address: str,
        asset: str,
        amount: int,
        from_user_id: Optional[str] = None,
        to_user_id: Optional[str] = None,
        memo: Optional[str] = None,
    ) -> Transfer:
        """Persist a new PENDING transfer."""
        transfer = Transfer(
            from_address=from_address,
            to_address=to_address,
            asset=asset,
            amount=Decimal(amount),
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            memo=memo,
            status=PaymentStatus.PENDING.value,
        )
        self.session.add(transfer)
        await self.session.flush()
        return transfer

    async def get_transfer(self, transfer_id: str) -> Optional[Transfer]:
        stmt = select(Transfer).where(Transfer.id == transfer_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_transfer_by_tx_hash(self, tx_hash: str) -> Optional[Transfer]:
        stmt = select(Transfer).where(Transfer.tx_hash == tx_hash)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_open_transfer(self, to_address: str, from_address: str) -> Optional[Transfer]:
        """Most recent PENDING/PROCESSING transfer for (recipient, sender)."""
        stmt = (
            select(Transfer)
            .where(
                Transfer.to_address == to_address,
                Transfer.from_address == from_address,
                Transfer.status.in_(OPEN_STATUSES),
            )
            .order_by(Transfer.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # State machine
    async def transition(
        self,
        record: Record,
        new_status: Union[str, PaymentStatus],
        error_message: Optional[str] = None,
    ) -> Record:
        """Move a payment or transfer to a new status.

        Raises:
            InvalidStateTransition: If the move is not in ALLOWED_TRANSITIONS
        """
        target = _status_value(new_status)
        current = record.status
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition(
                f"{type(record).__name__} {record.id}: {current} -> {target} not allowed"
            )

        record.status = target
        if target == PaymentStatus.COMPLETED.value:
            record.completed_at = datetime.now(timezone.utc)
        if error_message:
            record.error_message = error_message

        await self.session.flush()
        logger.info(f"{type(record).__name__} {record.id}: {current} -> {target}")
        return record

    async def assign_tx_hash(self, record: Record, tx_hash: str) -> bool:
        """Record the transaction hash.

        The hash is write-once: it may only be replaced while the record is
        still PENDING (a re-signed envelope has a new hash).

        Returns:
            True if the hash was written, False if an existing one was kept
        """
        if record.tx_hash == tx_hash:
            return False
        if record.tx_hash and record.status != PaymentStatus.PENDING.value:
            logger.warning(
                f"{type(record).__name__} {record.id} already has tx_hash {record.tx_hash}, "
                f"ignoring {tx_hash}"
            )
            return False
        record.tx_hash = tx_hash
        await self.session.flush()
        return True

    # Event cursor
    async def load_cursor(self, name: str) -> Optional[int]:
        stmt = select(EventCursorCheckpoint).where(EventCursorCheckpoint.name == name)
        result = await self.session.execute(stmt)
        checkpoint = result.scalar_one_or_none()
        return checkpoint.ledger if checkpoint else None

    async def save_cursor(self, name: str, ledger: int) -> None:
        """Upsert the checkpoint, never moving it backwards."""
        stmt = select(EventCursorCheckpoint).where(EventCursorCheckpoint.name == name)
        result = await self.session.execute(stmt)
        checkpoint = result.scalar_one_or_none()
        if checkpoint is None:
            self.session.add(EventCursorCheckpoint(name=name, ledger=ledger))
        elif ledger > checkpoint.ledger:
            checkpoint.ledger = ledger
        await self.session.flush()
