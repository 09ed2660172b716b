"""SQLAlchemy models for payments, transfers and the event cursor."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class PaymentStatus(str, Enum):
    """Status shared by payments and transfers.

    Allowed transitions:
        PENDING -> PROCESSING -> COMPLETED
        PENDING -> FAILED
        PROCESSING -> FAILED
    """

    PENDING = "pending"          # Sponsored, waiting for the user's signature
    PROCESSING = "processing"    # Submitted or seen on the ledger
    COMPLETED = "completed"      # Settlement observed
    FAILED = "failed"            # Rejected, failed or reported failed on-chain


TransferStatus = PaymentStatus

OPEN_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value)

# i128 needs 39 decimal digits
AMOUNT_TYPE = Numeric(39, 0)


class Payment(Base):
    """Merchant-directed payment intent."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    from_address: Mapped[str] = mapped_column(String(56), index=True)
    merchant_id: Mapped[str] = mapped_column(String(64), index=True)
    send_asset: Mapped[str] = mapped_column(String(70))
    send_amount: Mapped[Decimal] = mapped_column(AMOUNT_TYPE)
    min_receive: Mapped[Optional[Decimal]] = mapped_column(AMOUNT_TYPE, nullable=True)
    receive_amount: Mapped[Optional[Decimal]] = mapped_column(AMOUNT_TYPE, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value)
    memo: Mapped[Optional[str]] = mapped_column(String(28), nullable=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_payments_match", "merchant_id", "from_address", "status"),)

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, merchant={self.merchant_id}, status={self.status})>"


class Transfer(Base):
    """Peer-to-peer transfer intent."""

    __tablename__ = "transfers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    from_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    to_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    from_address: Mapped[str] = mapped_column(String(56), index=True)
    to_address: Mapped[str] = mapped_column(String(56), index=True)
    asset: Mapped[str] = mapped_column(String(70))
    amount: Mapped[Decimal] = mapped_column(AMOUNT_TYPE)
    receive_amount: Mapped[Optional[Decimal]] = mapped_column(AMOUNT_TYPE, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value)
    memo: Mapped[Optional[str]] = mapped_column(String(28), nullable=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_transfers_match", "to_address", "from_address", "status"),)

    def __repr__(self) -> str:
        return f"<Transfer(id={self.id}, to={self.to_address}, status={self.status})>"


class EventCursorCheckpoint(Base):
    """Last ledger the event loop resumes from, keyed by stream name."""

    __tablename__ = "event_cursors"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    ledger: Mapped[int] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
