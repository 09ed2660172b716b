"""Tests for the payment repository and status machine."""

from decimal import Decimal

import pytest

from blinks_relay.errors import InvalidStateTransition
from blinks_relay.ledger.models import PaymentStatus
from blinks_relay.ledger.repository import PaymentRepository

PAYER = "GBRPYHIL2CI3FNQ4BXLFMNDLFJUNPU2HY3ZMFSHONUCEOASW7QC7OX2H"
MERCHANT = "merchant-42"


async def _payment(repo: PaymentRepository, amount: int = 1_000_000):
    return await repo.create_payment(
        from_address=PAYER,
        merchant_id=MERCHANT,
        send_asset="XLM",
        send_amount=amount,
    )


class TestPaymentRecords:
    """Tests for creating and loading payments."""

    @pytest.mark.asyncio
    async def test_create_payment_is_pending(self, payment_repo: PaymentRepository):
        """New payments start PENDING with no tx hash."""
        payment = await _payment(payment_repo)

        assert payment.id
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.tx_hash is None

        loaded = await payment_repo.get_payment(payment.id)
        assert loaded is payment

    @pytest.mark.asyncio
    async def test_large_amount_is_preserved(self, payment_repo: PaymentRepository):
        """Amounts beyond 32 bits survive storage exactly."""
        payment = await _payment(payment_repo, amount=2**53 - 1)
        await payment_repo.session.commit()

        loaded = await payment_repo.get_payment(payment.id)
        assert int(loaded.send_amount) == 2**53 - 1

    @pytest.mark.asyncio
    async def test_find_open_payment_prefers_most_recent(self, payment_repo: PaymentRepository):
        """The newest open payment for (merchant, payer) is matched."""
        older = await _payment(payment_repo)
        newer = await _payment(payment_repo)
        older.created_at = newer.created_at.replace(year=newer.created_at.year - 1)
        await payment_repo.session.flush()

        found = await payment_repo.find_open_payment(MERCHANT, PAYER)
        assert found.id == newer.id

    @pytest.mark.asyncio
    async def test_find_open_payment_skips_terminal(self, payment_repo: PaymentRepository):
        """Completed and failed payments are never matched."""
        payment = await _payment(payment_repo)
        await payment_repo.transition(payment, PaymentStatus.FAILED)

        assert await payment_repo.find_open_payment(MERCHANT, PAYER) is None

    @pytest.mark.asyncio
    async def test_create_transfer(self, payment_repo: PaymentRepository):
        recipient = "GDQNY3PBOJOKYZSRMK2S7LHHGWZIUISD4QORETLMXEWXBI7KFZZMKTL3"
        transfer = await payment_repo.create_transfer(
            from_address=PAYER, to_address=recipient, asset="XLM", amount=10
        )

        found = await payment_repo.find_open_transfer(recipient, PAYER)
        assert found.id == transfer.id
        assert transfer.amount == Decimal(10)


class TestStatusMachine:
    """Tests for allowed and rejected transitions."""

    @pytest.mark.asyncio
    async def test_happy_path(self, payment_repo: PaymentRepository):
        """PENDING -> PROCESSING -> COMPLETED sets completed_at."""
        payment = await _payment(payment_repo)

        await payment_repo.transition(payment, PaymentStatus.PROCESSING)
        await payment_repo.transition(payment, PaymentStatus.COMPLETED)

        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.completed_at is not None

    @pytest.mark.asyncio
    async def test_cannot_skip_processing(self, payment_repo: PaymentRepository):
        payment = await _payment(payment_repo)

        with pytest.raises(InvalidStateTransition):
            await payment_repo.transition(payment, PaymentStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_processing_can_fail(self, payment_repo: PaymentRepository):
        payment = await _payment(payment_repo)
        await payment_repo.transition(payment, PaymentStatus.PROCESSING)

        await payment_repo.transition(payment, PaymentStatus.FAILED, error_message="boom")

        assert payment.status == PaymentStatus.FAILED.value
        assert payment.error_message == "boom"

    @pytest.mark.asyncio
    async def test_terminal_states_are_final(self, payment_repo: PaymentRepository):
        """No transition leaves COMPLETED or FAILED."""
        payment = await _payment(payment_repo)
        await payment_repo.transition(payment, PaymentStatus.FAILED)

        for target in PaymentStatus:
            with pytest.raises(InvalidStateTransition):
                await payment_repo.transition(payment, target)


class TestTxHash:
    """Tests for the write-once transaction hash."""

    @pytest.mark.asyncio
    async def test_hash_replaceable_while_pending(self, payment_repo: PaymentRepository):
        payment = await _payment(payment_repo)

        assert await payment_repo.assign_tx_hash(payment, "a" * 64)
        assert await payment_repo.assign_tx_hash(payment, "b" * 64)
        assert payment.tx_hash == "b" * 64

    @pytest.mark.asyncio
    async def test_hash_fixed_after_pending(self, payment_repo: PaymentRepository):
        payment = await _payment(payment_repo)
        await payment_repo.assign_tx_hash(payment, "a" * 64)
        await payment_repo.transition(payment, PaymentStatus.PROCESSING)

        assert not await payment_repo.assign_tx_hash(payment, "b" * 64)
        assert payment.tx_hash == "a" * 64


class TestCursorCheckpoint:
    @pytest.mark.asyncio
    async def test_cursor_never_moves_back(self, payment_repo: PaymentRepository):
        assert await payment_repo.load_cursor("events") is None

        await payment_repo.save_cursor("events", 500)
        await payment_repo.save_cursor("events", 400)
        assert await payment_repo.load_cursor("events") == 500

        await payment_repo.save_cursor("events", 600)
        assert await payment_repo.load_cursor("events") == 600
