"""Standalone event ingestion runner.

Runs the event loop without the HTTP API, reconciling settlement events
into the database configured by DATABASE_URL.

Usage:
    python -m blinks_relay.events.runner
    python -m blinks_relay.events.runner --once --start-ledger 123456

Environment variables:
    SOROBAN_RPC_URL: Soroban RPC endpoint
    TRACKED_CONTRACT_IDS: Comma-separated contract ids (default: PAYMENT_ROUTER_CONTRACT)
    EVENT_POLL_INTERVAL: Seconds between polls (default: 5)
"""

import argparse
import asyncio
import logging
import signal
from typing import Optional

from blinks_relay.config import get_settings
from blinks_relay.events.cursor import EventCursor, SqlCursorStore
from blinks_relay.events.ingestion import EventIngestionLoop
from blinks_relay.events.reconciliation import Reconciler
from blinks_relay.ledger.database import close_db, get_session_factory, init_db
from blinks_relay.notifications.queue import create_notification_queue
from blinks_relay.stellar.rpc import SorobanLedgerRpc

logger = logging.getLogger(__name__)


async def run(once: bool = False, start_ledger: Optional[int] = None) -> None:
    settings = get_settings()

    contract_ids = settings.tracked_contracts
    if not contract_ids:
        logger.error("No contracts to watch: set TRACKED_CONTRACT_IDS or PAYMENT_ROUTER_CONTRACT")
        return

    await init_db()
    rpc = SorobanLedgerRpc(settings.soroban_rpc_url, settings.rpc_request_timeout)
    notifications = create_notification_queue(settings.redis_url, settings.notification_queue_name)
    reconciler = Reconciler(get_session_factory(), notifications)

    loop = EventIngestionLoop(
        rpc=rpc,
        dispatch=reconciler.apply,
        contract_ids=contract_ids,
        cursor=EventCursor(start_ledger),
        cursor_store=SqlCursorStore(get_session_factory()) if settings.persist_event_cursor else None,
        poll_interval=settings.event_poll_interval,
        error_backoff=settings.event_error_backoff,
        fallback_ledger=settings.event_fallback_ledger,
        page_limit=settings.event_page_limit,
    )

    try:
        if once:
            result = await loop.poll_once()
            logger.info(
                f"Single poll: {result.fetched} fetched, {result.dispatched} dispatched, "
                f"{result.failures} failed"
            )
            return

        stop = asyncio.Event()
        event_loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            event_loop.add_signal_handler(sig, stop.set)

        loop.start()
        await stop.wait()
    finally:
        await loop.stop()
        await notifications.close()
        await rpc.close()
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Contract event ingestion runner")
    parser.add_argument("--once", action="store_true", help="Run a single poll and exit")
    parser.add_argument(
        "--start-ledger", type=int, default=None, help="Ledger to start from (overrides checkpoint)"
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    asyncio.run(run(once=args.once, start_ledger=args.start_ledger))


if __name__ == "__main__":
    main()
