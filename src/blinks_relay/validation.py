"""Input validation shared by the builder and the payment service."""

from stellar_sdk import StrKey

from blinks_relay.errors import ValidationError

# Soroban amounts are signed 128-bit integers
I128_MAX = 2**127 - 1


def validate_amount(amount, field: str = "amount") -> int:
    """Validate an integer amount in the asset's smallest unit.

    Args:
        amount: Amount to check (must be an int, bool is rejected)
        field: Name used in the error message

    Returns:
        The amount unchanged

    Raises:
        ValidationError: If the amount is not a positive integer within i128
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"{field} must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    if amount > I128_MAX:
        raise ValidationError(f"{field} exceeds the 128-bit range")
    return amount


def validate_account_address(address: str, field: str = "address") -> str:
    """Validate a G... account address."""
    if not isinstance(address, str) or not StrKey.is_valid_ed25519_public_key(address):
        raise ValidationError(f"{field} is not a valid Stellar account address")
    return address


def validate_merchant_id(merchant_id: str) -> str:
    if not merchant_id or not merchant_id.strip():
        raise ValidationError("merchant_id is required")
    if len(merchant_id) > 64:
        raise ValidationError("merchant_id must be at most 64 characters")
    return merchant_id.strip()
