"""Pytest configuration and fixtures."""

import os
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["FEE_PAYER_SECRET"] = ""
os.environ["REDIS_URL"] = ""
os.environ["DEBUG"] = "true"

from stellar_sdk import Asset, Keypair, Network, SorobanDataBuilder, TransactionEnvelope

from blinks_relay.ledger.models import Base
from blinks_relay.ledger.repository import PaymentRepository
from blinks_relay.signing.local import LocalFeePayerSigner
from blinks_relay.stellar.rpc import (
    LedgerRpc,
    RawEvent,
    SendResult,
    SendStatus,
    SimulationResult,
    TransactionStatusResult,
    TxStatus,
)

PASSPHRASE = Network.TESTNET_NETWORK_PASSPHRASE
RESOURCE_FEE = 51_234
FEE_PAYER_SEQUENCE = 4_000_000_000


def soroban_data_xdr(resource_fee: int = RESOURCE_FEE) -> str:
    return SorobanDataBuilder().set_resource_fee(resource_fee).build().to_xdr()


class FakeLedgerRpc(LedgerRpc):
    """In-memory LedgerRpc recording every call."""

    def __init__(self):
        self.latest_ledger = 1_000
        self.latest_ledger_error: Optional[Exception] = None
        self.sequences: dict[str, int] = {}
        self.account_error: Optional[Exception] = None
        self.simulation = SimulationResult(
            transaction_data=soroban_data_xdr(),
            min_resource_fee=RESOURCE_FEE,
            auth=[],
            latest_ledger=1_000,
        )
        self.simulation_error: Optional[Exception] = None
        self.send_status = SendStatus.PENDING
        self.tx_statuses: list[TxStatus] = [TxStatus.SUCCESS]
        self.event_batches: list = []

        self.simulate_calls: list[TransactionEnvelope] = []
        self.account_calls: list[str] = []
        self.sent: list[TransactionEnvelope] = []
        self.status_calls: list[str] = []
        self.event_calls: list[int] = []
        self.closed = False

    async def get_latest_ledger(self) -> int:
        if self.latest_ledger_error:
            raise self.latest_ledger_error
        return self.latest_ledger

    async def get_account_sequence(self, address: str) -> int:
        self.account_calls.append(address)
        if self.account_error:
            raise self.account_error
        return self.sequences.get(address, FEE_PAYER_SEQUENCE)

    async def simulate(self, envelope: TransactionEnvelope) -> SimulationResult:
        self.simulate_calls.append(envelope)
        if self.simulation_error:
            raise self.simulation_error
        return self.simulation

    async def send_transaction(self, envelope: TransactionEnvelope) -> SendResult:
        self.sent.append(envelope)
        return SendResult(status=self.send_status, tx_hash=envelope.hash_hex())

    async def get_transaction(self, tx_hash: str) -> TransactionStatusResult:
        self.status_calls.append(tx_hash)
        # Walk the scripted statuses, repeating the last one
        index = min(len(self.status_calls), len(self.tx_statuses)) - 1
        status = self.tx_statuses[index]
        if isinstance(status, Exception):
            raise status
        ledger = 1_001 if status == TxStatus.SUCCESS else None
        return TransactionStatusResult(status=status, tx_hash=tx_hash, ledger=ledger)

    async def get_events(self, start_ledger: int, contract_ids: list[str], limit: int = 100):
        self.event_calls.append(start_ledger)
        if not self.event_batches:
            return []
        batch = self.event_batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return list(batch)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def user_keypair() -> Keypair:
    return Keypair.random()


@pytest.fixture
def fee_payer_keypair() -> Keypair:
    return Keypair.random()


@pytest.fixture
def signer(fee_payer_keypair: Keypair) -> LocalFeePayerSigner:
    return LocalFeePayerSigner(fee_payer_keypair.secret)


@pytest.fixture
def fake_rpc() -> FakeLedgerRpc:
    return FakeLedgerRpc()


@pytest.fixture
def contract_id() -> str:
    """A valid contract address (the testnet XLM asset contract)."""
    return Asset.native().contract_id(PASSPHRASE)


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def payment_repo(db_session: AsyncSession) -> PaymentRepository:
    """Create payment repository for testing."""
    return PaymentRepository(db_session)
