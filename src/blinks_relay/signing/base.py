"""Base interface for the fee-payer signer.

The fee payer is the only key the relay holds. Signing flow:
1. Sponsor rebuilds the envelope with the fee payer as source
2. Signer adds exactly one signature (the fee payer's)
3. Half-signed envelope goes back to the user, who adds their own
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

from stellar_sdk import Keypair, TransactionEnvelope
from stellar_sdk.exceptions import BadSignatureError

from blinks_relay.errors import RelayError

logger = logging.getLogger(__name__)


class SignerType(str, Enum):
    """Type of signing backend."""
    LOCAL = "local"           # Secret seed in memory


class SigningError(RelayError):
    """Signing failed."""

    category = "signing_error"
    public_message = "Transaction signing failed"


class FeePayerSigner(ABC):
    """Abstract fee-payer signer.

    Implementations must never expose the secret seed; only the public
    address and signatures leave the signer.
    """

    def __init__(self, signer_type: SignerType):
        self.signer_type = signer_type

    @property
    @abstractmethod
    def public_key(self) -> str:
        """Fee-payer account address (G...)."""
        pass

    @abstractmethod
    def sign(self, envelope: TransactionEnvelope) -> None:
        """Append the fee-payer signature to the envelope in place."""
        pass

    def verify(self, envelope: TransactionEnvelope) -> bool:
        """Check that the envelope carries a valid fee-payer signature."""
        keypair = Keypair.from_public_key(self.public_key)
        tx_hash = envelope.hash()
        hint = keypair.signature_hint()
        for decorated in envelope.signatures:
            if decorated.signature_hint != hint:
                continue
            try:
                keypair.verify(tx_hash, decorated.signature)
                return True
            except BadSignatureError:
                continue
        return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(type={self.signer_type.value}, address={self.public_key})>"
