"""Local fee-payer signer.

Holds the fee-payer secret seed in memory. The seed is parsed once at
construction and is never logged, serialized or returned.

WARNING: the fee-payer account only needs enough XLM to cover fees; keep its
balance low.
"""

import logging
from typing import Optional

from stellar_sdk import Keypair, TransactionEnvelope
from stellar_sdk.exceptions import Ed25519SecretSeedInvalidError

from blinks_relay.config import Settings
from blinks_relay.errors import ConfigurationError
from blinks_relay.signing.base import FeePayerSigner, SignerType, SigningError

logger = logging.getLogger(__name__)


class LocalFeePayerSigner(FeePayerSigner):
    """Fee-payer signer backed by an in-memory keypair."""

    def __init__(self, secret_seed: str):
        super().__init__(SignerType.LOCAL)
        try:
            self._keypair = Keypair.from_secret(secret_seed.strip())
        except (Ed25519SecretSeedInvalidError, ValueError) as e:
            raise ConfigurationError("FEE_PAYER_SECRET is not a valid secret seed") from e
        logger.info(f"Loaded fee-payer key for {self._keypair.public_key}")

    @property
    def public_key(self) -> str:
        return self._keypair.public_key

    def sign(self, envelope: TransactionEnvelope) -> None:
        source = envelope.transaction.source.account_id
        if source != self.public_key:
            raise SigningError(
                f"Refusing to sign: envelope source {source} is not the fee payer"
            )
        envelope.sign(self._keypair)


def create_fee_payer_signer(settings: Settings) -> Optional[FeePayerSigner]:
    """Create the fee-payer signer from settings.

    Returns:
        The signer, or None when FEE_PAYER_SECRET is not set (sponsorship
        then fails with FeePayerNotConfigured at request time)
    """
    if not settings.fee_payer_secret:
        logger.warning("FEE_PAYER_SECRET not set - fee sponsorship disabled")
        return None
    return LocalFeePayerSigner(settings.fee_payer_secret)
