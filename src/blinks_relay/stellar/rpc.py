"""Ledger RPC client.

Everything the relay needs from the network goes through ``LedgerRpc``:
latest ledger, account sequence, simulation, submission, status lookups and
contract events. ``SorobanLedgerRpc`` talks to a Soroban RPC server through
``stellar_sdk.SorobanServerAsync`` and translates its responses and
exceptions into the relay's own types, so the rest of the code never sees
SDK response classes.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from stellar_sdk import SorobanServerAsync, TransactionEnvelope
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.exceptions import (
    AccountNotFoundException,
    BaseRequestError,
    ConnectionError as SdkConnectionError,
    SorobanRpcErrorResponse,
)
from stellar_sdk.soroban_rpc import (
    EventFilter,
    EventFilterType,
    GetTransactionStatus,
    SendTransactionStatus,
)

from blinks_relay.errors import FeePayerNotConfigured, SimulationUnexpectedError, TransportError
from blinks_relay.safety import redact_secrets

logger = logging.getLogger(__name__)


class SendStatus(str, Enum):
    """Submission acknowledgement."""

    PENDING = "PENDING"
    DUPLICATE = "DUPLICATE"
    TRY_AGAIN_LATER = "TRY_AGAIN_LATER"
    ERROR = "ERROR"


class TxStatus(str, Enum):
    """Lookup status of a submitted transaction."""

    SUCCESS = "SUCCESS"
    NOT_FOUND = "NOT_FOUND"
    FAILED = "FAILED"


@dataclass
class SimulationResult:
    """Simulation response.

    Attributes:
        error: Simulation-level error text (the network refused the call)
        transaction_data: SorobanTransactionData XDR (footprint + resources)
        min_resource_fee: Minimum resource fee in stroops
        auth: SorobanAuthorizationEntry XDRs recorded during simulation
        result_xdr: Return value XDR of the invocation
        restore_required: Archived ledger entries must be restored first
        latest_ledger: Ledger the simulation ran against
    """

    error: Optional[str] = None
    transaction_data: Optional[str] = None
    min_resource_fee: Optional[int] = None
    auth: list[str] = field(default_factory=list)
    result_xdr: Optional[str] = None
    restore_required: bool = False
    latest_ledger: Optional[int] = None


@dataclass
class SendResult:
    status: SendStatus
    tx_hash: str
    error_result_xdr: Optional[str] = None
    latest_ledger: Optional[int] = None


@dataclass
class TransactionStatusResult:
    status: TxStatus
    tx_hash: str
    ledger: Optional[int] = None
    result_xdr: Optional[str] = None


@dataclass
class RawEvent:
    """Contract event as returned by the network.

    ``topics`` and ``value`` are base64 SCVal XDR strings.
    """

    ledger: int
    contract_id: str
    topics: list[str]
    value: Optional[str] = None
    id: Optional[str] = None
    tx_hash: Optional[str] = None
    event_type: str = "contract"


class LedgerRpc(ABC):
    """Abstract ledger RPC client."""

    @abstractmethod
    async def get_latest_ledger(self) -> int:
        """Sequence number of the latest closed ledger."""
        pass

    @abstractmethod
    async def get_account_sequence(self, address: str) -> int:
        """Current sequence number of an account.

        Raises:
            FeePayerNotConfigured: If the account does not exist
            TransportError: On network failure
        """
        pass

    @abstractmethod
    async def simulate(self, envelope: TransactionEnvelope) -> SimulationResult:
        pass

    @abstractmethod
    async def send_transaction(self, envelope: TransactionEnvelope) -> SendResult:
        pass

    @abstractmethod
    async def get_transaction(self, tx_hash: str) -> TransactionStatusResult:
        pass

    @abstractmethod
    async def get_events(
        self,
        start_ledger: int,
        contract_ids: list[str],
        limit: int = 100,
    ) -> list[RawEvent]:
        """Contract events from ``start_ledger`` onward for the given contracts."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass


class SorobanLedgerRpc(LedgerRpc):
    """LedgerRpc backed by a Soroban RPC server."""

    def __init__(self, rpc_url: str, request_timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.request_timeout = request_timeout
        self._client = AiohttpClient(request_timeout=request_timeout)
        self._server = SorobanServerAsync(rpc_url, client=self._client)

    async def _call(self, operation: str, coro):
        """Await an SDK call, mapping transport failures to TransportError."""
        try:
            return await coro
        except (SdkConnectionError, asyncio.TimeoutError) as e:
            logger.warning(f"RPC {operation} transport failure: {e}")
            raise TransportError(f"RPC {operation} failed: {e}") from e
        except SorobanRpcErrorResponse as e:
            logger.debug(f"RPC {operation} error response: {redact_secrets(str(e))}")
            raise TransportError(f"RPC {operation} returned an error response") from e
        except BaseRequestError as e:
            logger.warning(f"RPC {operation} request error: {e}")
            raise TransportError(f"RPC {operation} failed: {e}") from e

    async def get_latest_ledger(self) -> int:
        response = await self._call("getLatestLedger", self._server.get_latest_ledger())
        return int(response.sequence)

    async def get_account_sequence(self, address: str) -> int:
        try:
            account = await self._server.load_account(address)
        except AccountNotFoundException as e:
            raise FeePayerNotConfigured(f"Account {address} not found on the network") from e
        except (SdkConnectionError, asyncio.TimeoutError, BaseRequestError) as e:
            logger.warning(f"RPC getAccount transport failure: {e}")
            raise TransportError(f"RPC getAccount failed: {e}") from e
        return int(account.sequence)

    async def simulate(self, envelope: TransactionEnvelope) -> SimulationResult:
        try:
            response = await self._server.simulate_transaction(envelope)
        except (SdkConnectionError, asyncio.TimeoutError) as e:
            logger.warning(f"RPC simulateTransaction transport failure: {e}")
            raise TransportError(f"Simulation request failed: {e}") from e
        except SorobanRpcErrorResponse as e:
            logger.debug(f"simulateTransaction error response: {redact_secrets(str(e))}")
            raise SimulationUnexpectedError("Simulation returned an RPC error response") from e
        except BaseRequestError as e:
            raise TransportError(f"Simulation request failed: {e}") from e

        auth: list[str] = []
        result_xdr = None
        if response.results:
            first = response.results[0]
            auth = list(first.auth or [])
            result_xdr = first.xdr

        return SimulationResult(
            error=response.error,
            transaction_data=response.transaction_data,
            min_resource_fee=(
                int(response.min_resource_fee) if response.min_resource_fee is not None else None
            ),
            auth=auth,
            result_xdr=result_xdr,
            restore_required=response.restore_preamble is not None,
            latest_ledger=response.latest_ledger,
        )

    async def send_transaction(self, envelope: TransactionEnvelope) -> SendResult:
        response = await self._call("sendTransaction", self._server.send_transaction(envelope))
        status_map = {
            SendTransactionStatus.PENDING: SendStatus.PENDING,
            SendTransactionStatus.DUPLICATE: SendStatus.DUPLICATE,
            SendTransactionStatus.TRY_AGAIN_LATER: SendStatus.TRY_AGAIN_LATER,
            SendTransactionStatus.ERROR: SendStatus.ERROR,
        }
        return SendResult(
            status=status_map.get(response.status, SendStatus.ERROR),
            tx_hash=response.hash,
            error_result_xdr=response.error_result_xdr,
            latest_ledger=response.latest_ledger,
        )

    async def get_transaction(self, tx_hash: str) -> TransactionStatusResult:
        response = await self._call("getTransaction", self._server.get_transaction(tx_hash))
        status_map = {
            GetTransactionStatus.SUCCESS: TxStatus.SUCCESS,
            GetTransactionStatus.NOT_FOUND: TxStatus.NOT_FOUND,
            GetTransactionStatus.FAILED: TxStatus.FAILED,
        }
        return TransactionStatusResult(
            status=status_map.get(response.status, TxStatus.NOT_FOUND),
            tx_hash=tx_hash,
            ledger=response.ledger,
            result_xdr=response.result_xdr,
        )

    async def get_events(
        self,
        start_ledger: int,
        contract_ids: list[str],
        limit: int = 100,
    ) -> list[RawEvent]:
        filters = [
            EventFilter(event_type=EventFilterType.CONTRACT, contract_ids=list(contract_ids))
        ]
        response = await self._call(
            "getEvents",
            self._server.get_events(start_ledger=start_ledger, filters=filters, limit=limit),
        )
        return [
            RawEvent(
                ledger=int(event.ledger),
                contract_id=event.contract_id,
                topics=list(event.topic or []),
                value=event.value,
                id=event.id,
                tx_hash=getattr(event, "transaction_hash", None),
                event_type=str(event.event_type),
            )
            for event in response.events
        ]

    async def close(self) -> None:
        await self._server.close()
