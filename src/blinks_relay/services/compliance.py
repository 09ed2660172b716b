"""Compliance pre-check hook.

Runs before any transaction is built. The default implementation allows
everything; deployments plug in sanctions screening or limits here.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from blinks_relay.errors import ComplianceRejected

logger = logging.getLogger(__name__)


@dataclass
class ComplianceSubject:
    """What is being checked.

    Attributes:
        kind: "payment" or "transfer"
        from_address: Paying account
        counterparty: Merchant id or recipient address
        asset: Canonical asset string
        amount: Amount in the asset's smallest unit
    """

    kind: str
    from_address: str
    counterparty: str
    asset: str
    amount: int


@dataclass
class ComplianceDecision:
    allowed: bool
    reason: Optional[str] = None


class ComplianceChecker(ABC):
    """Abstract compliance checker."""

    @abstractmethod
    async def check(self, subject: ComplianceSubject) -> ComplianceDecision:
        pass

    async def ensure_allowed(self, subject: ComplianceSubject) -> None:
        """Raise ComplianceRejected if the subject is not allowed."""
        decision = await self.check(subject)
        if not decision.allowed:
            logger.warning(
                f"Compliance rejected {subject.kind} from {subject.from_address}: {decision.reason}"
            )
            raise ComplianceRejected(decision.reason or "Rejected by compliance")


class AllowAllCompliance(ComplianceChecker):
    async def check(self, subject: ComplianceSubject) -> ComplianceDecision:
        return ComplianceDecision(allowed=True)


class BlocklistCompliance(ComplianceChecker):
    """Reject any request touching a blocked address."""

    def __init__(self, blocked: set[str]):
        self.blocked = set(blocked)

    async def check(self, subject: ComplianceSubject) -> ComplianceDecision:
        for address in (subject.from_address, subject.counterparty):
            if address in self.blocked:
                return ComplianceDecision(allowed=False, reason=f"Address {address} is blocked")
        return ComplianceDecision(allowed=True)
