# assets.py

from stellar_sdk import Asset

from .config import ASSET_CODE, NATIVE_CODE, USDC_CODE
from .errors import UnknownAssetError


class AssetRegistry:
    """Maps the fixed set of asset symbols to ledger assets.

    XLM is the native asset; USDC and TZS are (code, issuer) pairs with
    issuers fixed for the lifetime of the process.
    """

    def __init__(self, usdc_issuer, tzs_issuer):
        self._issuers = {USDC_CODE: usdc_issuer, ASSET_CODE: tzs_issuer}

    def resolve(self, symbol):
        if symbol == NATIVE_CODE:
            return Asset.native()
        issuer = self._issuers.get(symbol)
        if issuer is None:
            raise UnknownAssetError(symbol)
        return Asset(symbol, issuer)

    def issuer_for(self, code):
        """Returns the fixed issuer for a known code, or None."""
        return self._issuers.get(code)


def asset_from_record(record):
    """Builds an Asset from a Horizon record ({asset_type, asset_code, asset_issuer})."""
    if record.get("asset_type") == "native":
        return Asset.native()
    return Asset(record["asset_code"], record["asset_issuer"])


def symbol_for(record):
    """Display symbol of a Horizon balance or payment record."""
    if record.get("asset_type") == "native":
        return NATIVE_CODE
    return record.get("asset_code") or ""
