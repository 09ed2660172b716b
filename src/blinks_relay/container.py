"""Component wiring.

Builds every long-lived component from settings once, so the API and the
ingestion loop share one RPC client, one fee-payer signer and one session
factory.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from blinks_relay.config import Settings
from blinks_relay.events.cursor import EventCursor, SqlCursorStore
from blinks_relay.events.ingestion import EventIngestionLoop
from blinks_relay.events.reconciliation import Reconciler
from blinks_relay.notifications.queue import NotificationQueue, create_notification_queue
from blinks_relay.services.compliance import AllowAllCompliance, ComplianceChecker
from blinks_relay.services.payment_service import PaymentService
from blinks_relay.signing.base import FeePayerSigner
from blinks_relay.signing.local import create_fee_payer_signer
from blinks_relay.stellar.assets import AssetResolver
from blinks_relay.stellar.builder import EnvelopeBuilder
from blinks_relay.stellar.rpc import LedgerRpc, SorobanLedgerRpc
from blinks_relay.stellar.simulator import ResourceSimulator
from blinks_relay.stellar.sponsorship import FeeSponsor
from blinks_relay.stellar.submission import SubmissionPoller

logger = logging.getLogger(__name__)


@dataclass
class RelayContainer:
    """All long-lived relay components."""

    settings: Settings
    rpc: LedgerRpc
    signer: Optional[FeePayerSigner]
    payment_service: PaymentService
    reconciler: Reconciler
    notifications: NotificationQueue
    event_loop: Optional[EventIngestionLoop] = None

    async def close(self) -> None:
        """Stop the event loop and release network resources."""
        if self.event_loop is not None:
            await self.event_loop.stop()
        await self.notifications.close()
        await self.rpc.close()


def build_container(
    settings: Settings,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    rpc: Optional[LedgerRpc] = None,
    signer: Optional[FeePayerSigner] = None,
    notifications: Optional[NotificationQueue] = None,
    compliance: Optional[ComplianceChecker] = None,
    with_event_loop: bool = True,
) -> RelayContainer:
    """Build the container; explicit arguments override settings-derived parts."""
    passphrase = settings.network_passphrase
    rpc = rpc or SorobanLedgerRpc(settings.soroban_rpc_url, settings.rpc_request_timeout)
    if signer is None:
        signer = create_fee_payer_signer(settings)
    notifications = notifications or create_notification_queue(
        settings.redis_url, settings.notification_queue_name
    )

    simulator = ResourceSimulator(rpc)
    sponsor = FeeSponsor(rpc, simulator, signer, passphrase)
    payment_service = PaymentService(
        builder=EnvelopeBuilder(passphrase, settings.base_fee, settings.tx_validity_seconds),
        sponsor=sponsor,
        poller=SubmissionPoller(rpc, settings.submission_poll_interval, settings.finality_timeout),
        resolver=AssetResolver(passphrase),
        router_contract_id=settings.payment_router_contract,
        compliance=compliance or AllowAllCompliance(),
        session_factory=session_factory,
    )
    reconciler = Reconciler(session_factory, notifications)

    event_loop = None
    if with_event_loop and settings.tracked_contracts:
        event_loop = EventIngestionLoop(
            rpc=rpc,
            dispatch=reconciler.apply,
            contract_ids=settings.tracked_contracts,
            cursor=EventCursor(),
            cursor_store=SqlCursorStore(session_factory) if settings.persist_event_cursor else None,
            poll_interval=settings.event_poll_interval,
            error_backoff=settings.event_error_backoff,
            fallback_ledger=settings.event_fallback_ledger,
            page_limit=settings.event_page_limit,
        )
    elif with_event_loop:
        logger.warning("No tracked contracts configured - event ingestion disabled")

    return RelayContainer(
        settings=settings,
        rpc=rpc,
        signer=signer,
        payment_service=payment_service,
        reconciler=reconciler,
        notifications=notifications,
        event_loop=event_loop,
    )
