"""Event ingestion loop.

Polls the network for events emitted by the tracked contracts, starting at
the cursor, and hands each unique event to a dispatch coroutine (normally
``Reconciler.apply``). One asyncio task, at most one poll in flight.

Each cycle:
1. Fetch events from the cursor forward
2. Normalize topics and drop duplicates
3. Decode and dispatch each event in order; a failing event is logged and
   skipped, the rest of the batch still runs
4. If any events were seen, advance the cursor to max ledger + 1 and
   checkpoint it
5. Sleep the poll interval, or the error backoff after a failed poll

The loop never exits on error; only ``stop()`` ends it.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from blinks_relay.errors import TransportError
from blinks_relay.events.cursor import CursorStore, EventCursor
from blinks_relay.events.decoding import decode_event, dedup_key, normalize_topics
from blinks_relay.events.models import ContractEvent
from blinks_relay.stellar.rpc import LedgerRpc

logger = logging.getLogger(__name__)

Dispatch = Callable[[ContractEvent], Awaitable[Any]]

# Keys remembered across polls to absorb overlapping pages
RECENT_KEYS_LIMIT = 10_000


class LoopState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class PollResult:
    """Counters for one poll cycle."""

    fetched: int = 0
    dispatched: int = 0
    duplicates: int = 0
    failures: int = 0
    next_ledger: Optional[int] = None


class EventIngestionLoop:
    """Poll contract events and dispatch them for reconciliation."""

    def __init__(
        self,
        rpc: LedgerRpc,
        dispatch: Dispatch,
        contract_ids: list[str],
        cursor: Optional[EventCursor] = None,
        cursor_store: Optional[CursorStore] = None,
        poll_interval: float = 5.0,
        error_backoff: float = 10.0,
        fallback_ledger: int = 1,
        page_limit: int = 100,
    ):
        """Initialize the loop.

        Args:
            rpc: Ledger RPC client
            dispatch: Coroutine called once per unique decoded event
            contract_ids: Contracts whose events are fetched
            cursor: Cursor to resume from (a fresh one is created if omitted)
            cursor_store: Optional checkpoint storage
            poll_interval: Seconds between polls
            error_backoff: Seconds to wait after a failed poll
            fallback_ledger: Start ledger if no checkpoint and no network tip
            page_limit: Maximum events per fetch
        """
        self.rpc = rpc
        self.dispatch = dispatch
        self.contract_ids = list(contract_ids)
        self.cursor = cursor or EventCursor()
        self.cursor_store = cursor_store
        self.poll_interval = poll_interval
        self.error_backoff = error_backoff
        self.fallback_ledger = fallback_ledger
        self.page_limit = page_limit

        self.state = LoopState.STOPPED
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._recent_keys: OrderedDict = OrderedDict()

    @property
    def is_running(self) -> bool:
        return self.state == LoopState.RUNNING

    def start(self) -> bool:
        """Start polling in a background task.

        Calling start on a running loop does nothing.

        Returns:
            True if a new task was started
        """
        if self.state == LoopState.RUNNING:
            logger.debug("Event ingestion already running")
            return False

        self.state = LoopState.RUNNING
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="event-ingestion")
        logger.info(f"Event ingestion started for {len(self.contract_ids)} contract(s)")
        return True

    async def stop(self) -> None:
        """Stop polling; returns once the task has finished."""
        if self.state == LoopState.STOPPED and self._task is None:
            return

        self.state = LoopState.STOPPED
        if self._stop_event is not None:
            self._stop_event.set()

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Event ingestion stopped")

    async def initialize_cursor(self) -> int:
        """Resolve the start ledger: checkpoint, then network tip, then fallback."""
        if self.cursor.is_initialized:
            return self.cursor.current_ledger()

        start: Optional[int] = None
        if self.cursor_store is not None:
            start = await self.cursor_store.load()
            if start is not None:
                logger.info(f"Resuming event ingestion from checkpoint ledger {start}")

        if start is None:
            try:
                start = await self.rpc.get_latest_ledger()
                logger.info(f"Starting event ingestion at network tip {start}")
            except TransportError as e:
                start = self.fallback_ledger
                logger.warning(f"Latest ledger unavailable ({e}), starting at {start}")

        self.cursor.advance_to(start)
        return self.cursor.current_ledger()

    async def poll_once(self) -> PollResult:
        """Run one fetch/dispatch/advance cycle."""
        start_ledger = await self.initialize_cursor()
        events = await self.rpc.get_events(start_ledger, self.contract_ids, limit=self.page_limit)

        result = PollResult(fetched=len(events))
        seen: set = set()

        for raw in events:
            topics = normalize_topics(raw.topics)
            key = dedup_key(raw, topics)
            if key in seen or key in self._recent_keys:
                result.duplicates += 1
                continue
            seen.add(key)
            self._remember(key)

            event = decode_event(raw, topics)
            try:
                await self.dispatch(event)
                result.dispatched += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                result.failures += 1
                logger.error(
                    f"Failed to process event {raw.id or key} in ledger {raw.ledger}: {e}",
                    exc_info=True,
                )

        if events:
            next_ledger = max(raw.ledger for raw in events) + 1
            if self.cursor.advance_to(next_ledger) and self.cursor_store is not None:
                await self.cursor_store.save(next_ledger)
            result.next_ledger = self.cursor.current_ledger()
            logger.info(
                f"Processed {result.dispatched} event(s) "
                f"({result.duplicates} duplicate, {result.failures} failed), "
                f"cursor at ledger {result.next_ledger}"
            )

        return result

    def _remember(self, key) -> None:
        self._recent_keys[key] = None
        while len(self._recent_keys) > RECENT_KEYS_LIMIT:
            self._recent_keys.popitem(last=False)

    async def _run(self) -> None:
        while self.state == LoopState.RUNNING:
            delay = self.poll_interval
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Event polling error: {e}", exc_info=True)
                delay = self.error_backoff

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
