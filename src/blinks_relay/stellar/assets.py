"""Address/asset resolution.

Maps a logical asset (``XLM`` or ``CODE:ISSUER``) to its classic ``Asset``
and to the contract id of its Stellar Asset Contract on a given network.
Pure computation; the same input always yields the same contract id.
"""

from dataclasses import dataclass
from typing import Optional

from stellar_sdk import Asset, StrKey

from blinks_relay.errors import ValidationError

NATIVE_CODES = ("XLM", "NATIVE")


@dataclass(frozen=True)
class ResolvedAsset:
    """A resolved asset.

    Attributes:
        code: Asset code (XLM for the native asset)
        issuer: Issuer account, None for XLM
        asset: stellar_sdk Asset object for classic operations
        contract_id: Stellar Asset Contract id (C...) on the resolver's network
    """

    code: str
    issuer: Optional[str]
    asset: Asset
    contract_id: str

    @property
    def is_native(self) -> bool:
        return self.issuer is None

    @property
    def canonical(self) -> str:
        """``XLM`` or ``CODE:ISSUER``."""
        return "XLM" if self.issuer is None else f"{self.code}:{self.issuer}"


class AssetResolver:
    """Resolve asset identifiers for one network."""

    def __init__(self, network_passphrase: str):
        self.network_passphrase = network_passphrase
        self._cache: dict[str, ResolvedAsset] = {}

    def resolve(self, code: str, issuer: Optional[str] = None) -> ResolvedAsset:
        """Resolve an asset code and optional issuer.

        Args:
            code: Asset code, or a combined ``CODE:ISSUER`` string
            issuer: Issuer account (required for anything except XLM)

        Raises:
            ValidationError: If a non-native asset has no valid issuer
        """
        if not code or not code.strip():
            raise ValidationError("Asset code is required")

        code = code.strip()
        if ":" in code and issuer is None:
            code, issuer = code.split(":", 1)

        if code.upper() in NATIVE_CODES and not issuer:
            key = "XLM"
        else:
            if not issuer:
                raise ValidationError(f"Issuer is required for non-native asset {code}")
            if not StrKey.is_valid_ed25519_public_key(issuer):
                raise ValidationError(f"Invalid issuer address for asset {code}")
            if not (1 <= len(code) <= 12) or not code.isalnum():
                raise ValidationError(f"Invalid asset code {code}")
            key = f"{code}:{issuer}"

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if key == "XLM":
            asset = Asset.native()
            resolved = ResolvedAsset(
                code="XLM",
                issuer=None,
                asset=asset,
                contract_id=asset.contract_id(self.network_passphrase),
            )
        else:
            asset = Asset(code, issuer)
            resolved = ResolvedAsset(
                code=code,
                issuer=issuer,
                asset=asset,
                contract_id=asset.contract_id(self.network_passphrase),
            )

        self._cache[key] = resolved
        return resolved

    def contract_id(self, code: str, issuer: Optional[str] = None) -> str:
        """Shortcut for ``resolve(code, issuer).contract_id``."""
        return self.resolve(code, issuer).contract_id
