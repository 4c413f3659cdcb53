"""
TradeLink Exceptions

Every error carries the HTTP status the API answers with.
"""


class TradeLinkError(Exception):
    """Base exception for TradeLink."""
    status_code = 500

    def __init__(self, message, detail=None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self):
        body = {"error": self.message}
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationError(TradeLinkError):
    """Missing or malformed request field."""
    status_code = 400


class UnknownAssetError(ValidationError):
    """Asset symbol outside the recognized set."""

    def __init__(self, symbol):
        super().__init__(f"Unknown asset: {symbol}")
        self.symbol = symbol


class MissingIssuer(ValidationError):
    """Non-native asset given without an issuer."""
    pass


class CredentialMismatch(TradeLinkError):
    """Secret key does not derive the declared public key."""
    status_code = 400


class InvalidSecretKey(CredentialMismatch):
    """Secret key is not a valid Stellar seed."""
    pass


class AccountNotFound(TradeLinkError):
    """Account does not exist on the ledger."""
    status_code = 404


class FundingFailed(TradeLinkError):
    """Friendbot refused or failed to fund an account."""
    status_code = 400


class IssuerNotFunded(TradeLinkError):
    """The in-memory issuing account has no ledger entry yet."""
    status_code = 400


class NoPathError(TradeLinkError):
    """Ledger returned no conversion path between two assets."""
    status_code = 400


class SubmissionRejected(TradeLinkError):
    """Ledger rejected the transaction or one of its operations."""
    status_code = 500

    def __init__(self, code, result_codes=None):
        super().__init__(code)
        self.code = code
        self.result_codes = result_codes or {}


class NetworkUnavailable(TradeLinkError):
    """Horizon or Friendbot could not be reached."""
    status_code = 500


class BootstrapStalled(TradeLinkError):
    """A liquidity bootstrap step never showed up on the ledger."""
    pass
