"""Event cursor and its checkpoint stores.

The cursor is owned by exactly one ingestion loop and only ever moves
forward. A CursorStore optionally persists it so a restart resumes where the
previous process stopped instead of at the network tip.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from blinks_relay.ledger.database import session_scope
from blinks_relay.ledger.repository import PaymentRepository

logger = logging.getLogger(__name__)

DEFAULT_STREAM = "contract-events"


class EventCursor:
    """Monotonic ledger position."""

    def __init__(self, ledger: Optional[int] = None):
        self._ledger = ledger

    @property
    def is_initialized(self) -> bool:
        return self._ledger is not None

    def current_ledger(self) -> int:
        if self._ledger is None:
            raise RuntimeError("Event cursor has not been initialized")
        return self._ledger

    def advance_to(self, ledger: int) -> bool:
        """Move forward to ``ledger``; lower values are ignored.

        Returns:
            True if the cursor moved
        """
        if self._ledger is not None and ledger <= self._ledger:
            return False
        self._ledger = ledger
        return True

    def __repr__(self) -> str:
        return f"<EventCursor(ledger={self._ledger})>"


class CursorStore(ABC):
    """Checkpoint storage for the event cursor."""

    @abstractmethod
    async def load(self) -> Optional[int]:
        pass

    @abstractmethod
    async def save(self, ledger: int) -> None:
        pass


class MemoryCursorStore(CursorStore):
    """Process-local checkpoint (dev/tests)."""

    def __init__(self, ledger: Optional[int] = None):
        self.ledger = ledger

    async def load(self) -> Optional[int]:
        return self.ledger

    async def save(self, ledger: int) -> None:
        if self.ledger is None or ledger > self.ledger:
            self.ledger = ledger


class SqlCursorStore(CursorStore):
    """Checkpoint stored in the ``event_cursors`` table."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        name: str = DEFAULT_STREAM,
    ):
        self.session_factory = session_factory
        self.name = name

    async def load(self) -> Optional[int]:
        async with session_scope(self.session_factory) as session:
            return await PaymentRepository(session).load_cursor(self.name)

    async def save(self, ledger: int) -> None:
        async with session_scope(self.session_factory) as session:
            await PaymentRepository(session).save_cursor(self.name, ledger)
        logger.debug(f"Checkpointed cursor '{self.name}' at ledger {ledger}")
