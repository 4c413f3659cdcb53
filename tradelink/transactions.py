# transactions.py

import logging
from decimal import Decimal, InvalidOperation

from stellar_sdk import Keypair, TransactionBuilder
from stellar_sdk.exceptions import (
    BaseHorizonError,
    ConnectionError as HorizonConnectionError,
    Ed25519SecretSeedInvalidError,
    NotFoundError,
)

from .config import BASE_FEE_FALLBACK, TRANSACTION_TIMEOUT
from .errors import (
    AccountNotFound,
    CredentialMismatch,
    InvalidSecretKey,
    NetworkUnavailable,
    SubmissionRejected,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Largest amount an operation can carry (int64 stroops).
MAX_AMOUNT = Decimal("922337203685.4775807")
STROOP = Decimal("0.0000001")


class SubmitResult:
    def __init__(self, hash, successful):
        self.hash = hash
        self.successful = successful

    @property
    def result(self):
        return "success" if self.successful else "failed"


def signing_keypair(public_key, secret_key):
    """
    Returns the keypair for secret_key after checking that it derives public_key.
    No network call is made; a mismatch is rejected up front.
    """
    try:
        keypair = Keypair.from_secret(secret_key.strip())
    except Ed25519SecretSeedInvalidError:
        raise InvalidSecretKey("Invalid secret key")
    if keypair.public_key != public_key.strip():
        raise CredentialMismatch("Secret key does not match public key")
    return keypair


def base_fee_with_fallback(server, default=BASE_FEE_FALLBACK):
    """Fetches the network base fee; falls back to a fixed conservative fee if Horizon can't say."""
    try:
        return int(server.fetch_base_fee())
    except (BaseHorizonError, HorizonConnectionError) as e:
        logger.warning("Base fee lookup failed (%s), using %s stroops", e, default)
        return default


def load_account(server, public_key):
    """Loads an account for building a transaction (current sequence number)."""
    try:
        return server.load_account(public_key)
    except NotFoundError:
        raise AccountNotFound("Account not found", detail=public_key)
    except HorizonConnectionError as e:
        raise NetworkUnavailable(f"Horizon unreachable: {e}")
    except BaseHorizonError as e:
        raise NetworkUnavailable(f"Horizon error: {e}")


def format_amount(value):
    """Plain decimal text with at most 7 decimal places."""
    text = format(Decimal(value).quantize(STROOP), "f")
    return text.rstrip("0").rstrip(".") if "." in text else text


def normalize_amount(amount):
    """
    Validates a request amount and returns it as Stellar amount text.

    Amounts are never rounded: more than 7 decimal places, zero, negative or
    above the int64 stroop limit are rejected.
    """
    if isinstance(amount, bool) or not isinstance(amount, (str, int, float)):
        raise ValidationError(f"Invalid amount: {amount}")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount}")
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Amount must be positive: {amount}")
    if value > MAX_AMOUNT:
        raise ValidationError(f"Amount exceeds {MAX_AMOUNT}: {amount}")
    if value.normalize().as_tuple().exponent < -7:
        raise ValidationError(f"Amount has more than 7 decimal places: {amount}")
    return format_amount(value)


def build_transaction(source_account, operations, keypair, network_passphrase,
                      base_fee, timeout=TRANSACTION_TIMEOUT):
    """
    Builds and signs a transaction holding the given operations.

    base_fee is the per-operation fee in stroops and must be a positive integer.
    """
    if not isinstance(base_fee, int) or isinstance(base_fee, bool) or base_fee <= 0:
        raise ValueError(f"Base fee must be a positive integer, got {base_fee!r}")
    if not operations:
        raise ValueError("A transaction needs at least one operation")

    builder = TransactionBuilder(
        source_account=source_account,
        network_passphrase=network_passphrase,
        base_fee=base_fee,
    )
    for operation in operations:
        builder.append_operation(operation)
    envelope = builder.set_timeout(timeout).build()
    envelope.sign(keypair)
    return envelope


def result_code(error):
    """
    Picks the most specific code out of a Horizon error: the first operation
    result code, else the transaction result code, else the error title.
    """
    extras = getattr(error, "extras", None) or {}
    codes = extras.get("result_codes") or {}
    operations = codes.get("operations") or []
    if operations:
        return operations[0], codes
    if codes.get("transaction"):
        return codes["transaction"], codes
    return getattr(error, "title", None) or str(error), codes


def submit_transaction(server, envelope):
    try:
        response = server.submit_transaction(envelope)
    except BaseHorizonError as e:
        code, codes = result_code(e)
        logger.warning("Transaction rejected: %s", codes or code)
        raise SubmissionRejected(code, codes)
    except HorizonConnectionError as e:
        raise NetworkUnavailable(f"Horizon unreachable: {e}")
    logger.info("Transaction submitted: %s", response["hash"])
    return SubmitResult(response["hash"], bool(response.get("successful", False)))
