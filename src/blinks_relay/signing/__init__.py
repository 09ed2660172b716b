"""Fee-payer signing.

The fee payer's key is the only private key resident in the service:
- LocalFeePayerSigner: secret seed loaded once from configuration
"""

from blinks_relay.signing.base import FeePayerSigner, SignerType, SigningError
from blinks_relay.signing.local import LocalFeePayerSigner, create_fee_payer_signer

__all__ = [
    "FeePayerSigner",
    "SignerType",
    "SigningError",
    "LocalFeePayerSigner",
    "create_fee_payer_signer",
]
