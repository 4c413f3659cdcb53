# payments.py

import logging
from decimal import Decimal

from stellar_sdk import PathPaymentStrictReceive, Payment
from stellar_sdk.exceptions import BaseHorizonError, ConnectionError as HorizonConnectionError

from .assets import asset_from_record
from .config import ASSET_CODE, USDC_CODE
from .errors import NetworkUnavailable, NoPathError
from .transactions import (
    MAX_AMOUNT,
    base_fee_with_fallback,
    build_transaction,
    format_amount,
    load_account,
    normalize_amount,
    signing_keypair,
    submit_transaction,
)

logger = logging.getLogger(__name__)


class PaymentOutcome:
    def __init__(self, transaction_hash, success):
        self.transaction_hash = transaction_hash
        self.success = success

    @property
    def result(self):
        return "success" if self.success else "failed"


def first_path(records):
    """Tie-break policy: Horizon's first-ranked path wins, no re-ranking."""
    return records[0]


def send_max_for(path_record, amount):
    """Spend cap from the path's quoted source amount, 2x amount if Horizon left it out."""
    source_amount = path_record.get("source_amount")
    if source_amount:
        return source_amount
    return format_amount(min(Decimal(amount) * 2, MAX_AMOUNT))


def no_path_hint(send_symbol, dest_symbol):
    pair = f"{send_symbol}→{dest_symbol}"
    if ASSET_CODE in pair or USDC_CODE in pair:
        hint = (
            f" {ASSET_CODE}↔XLM liquidity is created at server start; restart the server"
            f" if you just started it. For {USDC_CODE}↔{ASSET_CODE}, only {ASSET_CODE}↔XLM is supported."
        )
    else:
        hint = " Same-asset payment always works."
    return (
        f"No path found for {pair}. Try same-asset payment, or ensure both accounts"
        f" have the right trustlines.{hint}"
    )


class PaymentRouter:
    """
    Sends a payment, converting between assets when needed.

    Same-asset payments go out as a single Payment operation. Cross-asset
    payments ask Horizon for strict-receive paths delivering exactly `amount`
    of the destination asset and send one PathPaymentStrictReceive bounded
    by the chosen path's source amount.
    """

    def __init__(self, server, registry, network_passphrase,
                 fee_policy=base_fee_with_fallback, path_policy=first_path):
        self.server = server
        self.registry = registry
        self.network_passphrase = network_passphrase
        self.fee_policy = fee_policy
        self.path_policy = path_policy

    def find_path(self, send_symbol, dest_symbol, send_asset, dest_asset, amount):
        try:
            response = self.server.strict_receive_paths([send_asset], dest_asset, amount).call()
        except HorizonConnectionError as e:
            raise NetworkUnavailable(f"Horizon unreachable: {e}")
        except BaseHorizonError as e:
            raise NoPathError(
                "No path found for conversion. Ensure trustlines and liquidity exist.",
                detail=str(e),
            )
        records = response.get("_embedded", {}).get("records", [])
        if not records:
            raise NoPathError(no_path_hint(send_symbol, dest_symbol))
        return self.path_policy(records)

    def operation_for(self, receiver_public_key, send_symbol, dest_symbol, amount):
        send_asset = self.registry.resolve(send_symbol)
        dest_asset = self.registry.resolve(dest_symbol)

        if send_asset == dest_asset:
            return Payment(destination=receiver_public_key, asset=send_asset, amount=amount)

        best = self.find_path(send_symbol, dest_symbol, send_asset, dest_asset, amount)
        path = [asset_from_record(p) for p in best.get("path", [])]
        send_max = send_max_for(best, amount)
        logger.info(
            "Path payment %s %s -> %s, send_max %s %s via %d hop(s)",
            amount, dest_symbol, receiver_public_key, send_max, send_symbol, len(path),
        )
        return PathPaymentStrictReceive(
            destination=receiver_public_key,
            send_asset=send_asset,
            send_max=send_max,
            dest_asset=dest_asset,
            dest_amount=amount,
            path=path,
        )

    def route(self, sender_public_key, sender_secret_key, receiver_public_key,
              send_symbol, dest_symbol, amount):
        keypair = signing_keypair(sender_public_key, sender_secret_key)
        amount = normalize_amount(amount)
        # Unknown symbols are rejected before touching the network.
        self.registry.resolve(send_symbol)
        self.registry.resolve(dest_symbol)

        sender_account = load_account(self.server, keypair.public_key)
        fee = self.fee_policy(self.server)
        operation = self.operation_for(receiver_public_key.strip(), send_symbol, dest_symbol, amount)

        envelope = build_transaction(sender_account, [operation], keypair, self.network_passphrase, fee)
        submitted = submit_transaction(self.server, envelope)
        return PaymentOutcome(submitted.hash, submitted.successful)
