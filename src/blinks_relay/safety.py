"""Non-custodial safety guards.

The relay must never accept, store or echo a user's private key. These guards
reject secret seeds wherever user input enters the system and scrub anything
that looks like one from text that leaves the process.

CRITICAL: the fee-payer seed is the only secret the service may hold, and it
is loaded from configuration, never from a request.
"""

import logging
import re
from typing import Any

from stellar_sdk import StrKey

from blinks_relay.errors import ValidationError

logger = logging.getLogger(__name__)

# Stellar secret seeds are 56 base32 characters starting with "S"
_SECRET_SEED_RE = re.compile(r"\bS[A-Z2-7]{55}\b")

REDACTED = "S***REDACTED***"


class CustodialInputError(ValidationError):
    """Raised when a request carries something that looks like a secret key."""

    category = "custodial_input_rejected"
    public_message = "Private keys must never be sent to this service"


def looks_like_secret(value: Any) -> bool:
    """Check whether a value is (or embeds) a Stellar secret seed."""
    if not isinstance(value, str):
        return False
    if StrKey.is_valid_ed25519_secret_seed(value.strip()):
        return True
    return bool(_SECRET_SEED_RE.search(value))


def reject_secret_inputs(**fields: Any) -> None:
    """Raise if any named input field holds a secret seed.

    Args:
        **fields: Input values keyed by field name (for the log line)

    Raises:
        CustodialInputError: If any value looks like a secret seed
    """
    for name, value in fields.items():
        if looks_like_secret(value):
            logger.warning(f"Rejected request: field '{name}' contains a secret seed")
            raise CustodialInputError(f"Field '{name}' must not contain a private key")


def redact_secrets(text: str) -> str:
    """Replace every secret-seed-shaped substring with a placeholder."""
    if not text:
        return text
    return _SECRET_SEED_RE.sub(REDACTED, text)
