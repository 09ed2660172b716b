"""Error taxonomy for the relay.

Every error carries a ``category`` so callers can branch on the kind of
failure without parsing messages, and a ``retryable`` flag. Public payloads
only ever expose the category and a generic message; details stay in logs.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for all relay errors."""

    category = "internal_error"
    public_message = "Internal error"
    retryable = False

    def __init__(self, message: str = "", detail: Optional[str] = None):
        self.message = message or self.public_message
        self.detail = detail
        super().__init__(self.message)

    def public_dict(self) -> dict:
        """Payload safe to return to an untrusted caller."""
        return {"error": self.category, "message": self.public_message}


class ConfigurationError(RelayError):
    """A required setting (contract id, RPC url, key) is missing or invalid."""

    category = "configuration_error"
    public_message = "Service is not configured for this operation"


class FeePayerNotConfigured(ConfigurationError):
    """No fee-payer key is available, or its account does not exist."""

    category = "fee_payer_not_configured"
    public_message = "Fee sponsorship is unavailable"


class ValidationError(RelayError):
    """Caller input was rejected before any network call."""

    category = "validation_error"
    public_message = "Invalid request"


class EncodingError(ValidationError):
    """An argument could not be serialized to the ledger's value format."""

    category = "encoding_error"
    public_message = "Invalid transaction arguments"


class InvalidStateTransition(ValidationError):
    """A Payment/Transfer status change outside the allowed machine."""

    category = "invalid_state_transition"
    public_message = "Operation not allowed in current state"


class ComplianceRejected(ValidationError):
    """The compliance pre-check refused the request."""

    category = "compliance_rejected"
    public_message = "Request rejected by compliance checks"


class NotFoundError(RelayError):
    category = "not_found"
    public_message = "Resource not found"


class SimulationError(RelayError):
    """The network simulated the transaction and refused it.

    Not retryable: the same envelope will fail the same way.
    """

    category = "simulation_error"
    public_message = "Transaction simulation failed"


class SimulationUnexpectedError(RelayError):
    """The simulation response was malformed or ambiguous."""

    category = "simulation_unexpected"
    public_message = "Transaction simulation returned an unexpected result"


class TransportError(RelayError):
    """Network unreachable, timed out, or asked us to retry later."""

    category = "transport_error"
    public_message = "Ledger network temporarily unavailable"
    retryable = True


class TransactionRejected(RelayError):
    """The network refused the transaction at submission time."""

    category = "transaction_rejected"
    public_message = "Transaction rejected by the network"


class TransactionFailed(RelayError):
    """The transaction was included in a ledger but failed."""

    category = "transaction_failed"
    public_message = "Transaction failed on the ledger"
