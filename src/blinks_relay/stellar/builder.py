"""Unsigned transaction construction.

NON-CUSTODIAL: the builder produces unsigned envelopes only. The user's
account appears as the operation source and as a placeholder envelope source
with sequence 0; the fee-payer rebuild replaces the envelope source and
sequence later, so the user's real sequence is never needed.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Sequence, Union

from stellar_sdk import Account, Asset, TransactionBuilder, TransactionEnvelope, scval
from stellar_sdk.xdr import SCVal

from blinks_relay.errors import ConfigurationError, EncodingError, ValidationError
from blinks_relay.validation import validate_account_address, validate_amount

logger = logging.getLogger(__name__)

DEFAULT_BASE_FEE = 100
DEFAULT_TIMEOUT = 300

# Classic payment amounts are int64 stroops
INT64_MAX = 2**63 - 1
STROOPS_PER_UNIT = Decimal(10**7)
MAX_TEXT_MEMO_BYTES = 28


@dataclass(frozen=True)
class InvocationArg:
    """A typed contract argument.

    Attributes:
        kind: One of address, bytes, symbol, string, i128, u64, u32, bool
        value: Python value to encode
    """

    kind: str
    value: Any


_ENCODERS = {
    "address": scval.to_address,
    "bytes": lambda v: scval.to_bytes(v.encode() if isinstance(v, str) else v),
    "symbol": scval.to_symbol,
    "string": scval.to_string,
    "i128": scval.to_int128,
    "u64": scval.to_uint64,
    "u32": scval.to_uint32,
    "bool": scval.to_bool,
}

ArgLike = Union[InvocationArg, SCVal]


def encode_arg(arg: ArgLike) -> SCVal:
    """Encode one argument to an SCVal.

    Raises:
        EncodingError: Unknown kind, wrong type or out-of-range value
    """
    if isinstance(arg, SCVal):
        return arg
    if not isinstance(arg, InvocationArg):
        raise EncodingError(f"Unsupported argument {arg!r}")

    encoder = _ENCODERS.get(arg.kind)
    if encoder is None:
        raise EncodingError(f"Unknown argument kind '{arg.kind}'")
    if arg.kind in ("i128", "u64", "u32") and (
        isinstance(arg.value, bool) or not isinstance(arg.value, int)
    ):
        raise EncodingError(f"{arg.kind} argument must be an integer")

    try:
        return encoder(arg.value)
    except (ValueError, TypeError) as e:
        raise EncodingError(f"Cannot encode {arg.kind} argument: {e}") from e


def stroops_to_amount(stroops: int) -> str:
    """Convert integer stroops to the decimal string classic operations expect."""
    return format(Decimal(stroops) / STROOPS_PER_UNIT, "f")


class EnvelopeBuilder:
    """Build unsigned transaction envelopes for one network."""

    def __init__(
        self,
        network_passphrase: str,
        base_fee: int = DEFAULT_BASE_FEE,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.network_passphrase = network_passphrase
        self.base_fee = base_fee
        self.timeout = timeout

    def _new_builder(self, source_address: str) -> TransactionBuilder:
        # Placeholder sequence; the sponsor substitutes the fee payer's
        return TransactionBuilder(
            source_account=Account(source_address, 0),
            network_passphrase=self.network_passphrase,
            base_fee=self.base_fee,
        )

    def build_contract_call(
        self,
        source_address: str,
        contract_id: Optional[str],
        function_name: Optional[str],
        args: Sequence[ArgLike] = (),
    ) -> TransactionEnvelope:
        """Build an unsigned contract invocation.

        Args:
            source_address: User account (operation source and placeholder tx source)
            contract_id: Contract to invoke (C...)
            function_name: Contract function
            args: InvocationArg items or pre-encoded SCVals

        Raises:
            ConfigurationError: If contract id or function name is unset
            EncodingError: If an argument cannot be encoded
            ValidationError: If the source address is invalid
        """
        if not contract_id:
            raise ConfigurationError("Contract id is not configured")
        if not function_name:
            raise ConfigurationError("Contract function name is not configured")
        validate_account_address(source_address, "source_address")

        parameters = [encode_arg(arg) for arg in args]

        builder = self._new_builder(source_address)
        try:
            builder.append_invoke_contract_function_op(
                contract_id=contract_id,
                function_name=function_name,
                parameters=parameters,
                source=source_address,
            )
        except ValueError as e:
            raise EncodingError(f"Cannot encode contract call: {e}") from e
        builder.set_timeout(self.timeout)
        envelope = builder.build()

        logger.debug(f"Built {function_name} call on {contract_id} for {source_address}")
        return envelope

    def build_payment(
        self,
        source_address: str,
        destination: str,
        asset: Asset,
        amount: int,
        memo: Optional[str] = None,
    ) -> TransactionEnvelope:
        """Build an unsigned classic payment.

        Args:
            source_address: Sender account
            destination: Recipient account
            asset: Asset to send
            amount: Amount in stroops
            memo: Optional text memo (at most 28 bytes)
        """
        validate_account_address(source_address, "source_address")
        validate_account_address(destination, "destination")
        validate_amount(amount)
        if amount > INT64_MAX:
            raise ValidationError("amount exceeds the classic payment range")
        if memo is not None and len(memo.encode()) > MAX_TEXT_MEMO_BYTES:
            raise ValidationError(f"memo must be at most {MAX_TEXT_MEMO_BYTES} bytes")

        builder = self._new_builder(source_address)
        builder.append_payment_op(
            destination=destination,
            asset=asset,
            amount=stroops_to_amount(amount),
            source=source_address,
        )
        if memo:
            builder.add_text_memo(memo)
        builder.set_timeout(self.timeout)
        envelope = builder.build()

        logger.debug(f"Built payment {source_address} -> {destination} ({amount} stroops)")
        return envelope
