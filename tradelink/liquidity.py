# liquidity.py

"""
Liquidity bootstrap for the custom asset.

At process start the in-memory issuer funds itself through Friendbot, trusts
and mints its own asset, then places two standing sell offers (TZS for XLM
and XLM for TZS) so that Horizon can find a conversion path between them.

Each step waits until the ledger reflects the previous one instead of
sleeping for a fixed time. The offers are separate transactions: one failing
leaves the other in place. Offers are never checked for existence, so running
the bootstrap twice places them twice.
"""

import enum
import logging
import threading
import time
from decimal import Decimal

from stellar_sdk import Asset, ChangeTrust, Keypair, ManageSellOffer, Payment, Price

from .config import (
    ASSET_CODE,
    BOOTSTRAP_POLL_INTERVAL,
    BOOTSTRAP_WAIT_TIMEOUT,
    ISSUER_MIN_BALANCE,
    ISSUER_SELF_SUPPLY,
    ISSUER_TRUST_LIMIT,
    SELL_TZS_OFFER_AMOUNT,
    SELL_XLM_OFFER_AMOUNT,
    TZS_PER_XLM,
)
from .errors import AccountNotFound, BootstrapStalled, TradeLinkError
from .stellar_operations import fetch_account, find_balance, fund_account_friendbot
from .transactions import (
    base_fee_with_fallback,
    build_transaction,
    load_account,
    submit_transaction,
)

logger = logging.getLogger(__name__)


class IssuerContext:
    """
    The issuing keypair and the asset it issues.

    Generated once per process and held only in memory; a restart creates a
    new issuer, so liquidity has to be bootstrapped again.
    """

    def __init__(self, keypair, asset_code=ASSET_CODE):
        self.keypair = keypair
        self.asset = Asset(asset_code, keypair.public_key)

    @classmethod
    def generate(cls, asset_code=ASSET_CODE):
        return cls(Keypair.random(), asset_code)

    @property
    def public_key(self):
        return self.keypair.public_key


class BootstrapState(enum.Enum):
    UNFUNDED = "unfunded"
    FUNDED = "funded"
    SELF_FUNDED = "self_funded"
    LIQUIDITY_READY = "liquidity_ready"
    FAILED = "failed"


def wait_for(predicate, timeout=BOOTSTRAP_WAIT_TIMEOUT, interval=BOOTSTRAP_POLL_INTERVAL,
             clock=time.monotonic, sleep=time.sleep):
    """Polls predicate until it returns True or timeout elapses. Returns the last outcome."""
    deadline = clock() + timeout
    while True:
        if predicate():
            return True
        if clock() >= deadline:
            return False
        sleep(interval)


class LiquidityBootstrap:
    def __init__(self, server, issuer, network_passphrase, funder=fund_account_friendbot,
                 wait_timeout=BOOTSTRAP_WAIT_TIMEOUT, poll_interval=BOOTSTRAP_POLL_INTERVAL,
                 sleep=time.sleep, clock=time.monotonic):
        self.server = server
        self.issuer = issuer
        self.network_passphrase = network_passphrase
        self.funder = funder
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.clock = clock
        self.state = BootstrapState.UNFUNDED
        self.offer_hashes = []
        self._thread = None

    def _wait(self, predicate, what):
        if not wait_for(predicate, self.wait_timeout, self.poll_interval, self.clock, self.sleep):
            raise BootstrapStalled(f"Timed out waiting for {what}")

    def _account_exists(self):
        try:
            fetch_account(self.server, self.issuer.public_key)
        except AccountNotFound:
            return False
        return True

    def _asset_balance(self):
        account = fetch_account(self.server, self.issuer.public_key)
        return find_balance(account.get("balances", []), self.issuer.asset)

    def _submit(self, operations):
        # Reload for the current sequence number right before building.
        account = load_account(self.server, self.issuer.public_key)
        envelope = build_transaction(
            account,
            operations,
            self.issuer.keypair,
            self.network_passphrase,
            base_fee_with_fallback(self.server),
        )
        return submit_transaction(self.server, envelope)

    def ensure_funded(self):
        if self._account_exists():
            logger.info("%s issuer already funded", self.issuer.asset.code)
        else:
            self.funder(self.issuer.public_key)
            self._wait(self._account_exists, "issuer account to be funded")
            logger.info("%s issuer funded via Friendbot", self.issuer.asset.code)
        self.state = BootstrapState.FUNDED

    def ensure_self_funded(self):
        """Trusts and mints the issuer's own asset. Returns False when the balance was already there."""
        balance = self._asset_balance()
        if balance is not None and Decimal(balance["balance"]) >= ISSUER_MIN_BALANCE:
            logger.info("Issuer already holds %s %s, skipping mint", balance["balance"], self.issuer.asset.code)
            self.state = BootstrapState.SELF_FUNDED
            return False

        operations = []
        if balance is None:
            operations.append(ChangeTrust(asset=self.issuer.asset, limit=ISSUER_TRUST_LIMIT))
        operations.append(
            Payment(destination=self.issuer.public_key, asset=self.issuer.asset, amount=ISSUER_SELF_SUPPLY)
        )
        self._submit(operations)

        def minted():
            current = self._asset_balance()
            return current is not None and Decimal(current["balance"]) >= ISSUER_MIN_BALANCE

        self._wait(minted, "issuer self-supply")
        self.state = BootstrapState.SELF_FUNDED
        return True

    def offers(self):
        native = Asset.native()
        return [
            ("sell TZS for XLM", ManageSellOffer(
                selling=self.issuer.asset,
                buying=native,
                amount=SELL_TZS_OFFER_AMOUNT,
                price=Price(1, TZS_PER_XLM),
            )),
            ("sell XLM for TZS", ManageSellOffer(
                selling=native,
                buying=self.issuer.asset,
                amount=SELL_XLM_OFFER_AMOUNT,
                price=Price(TZS_PER_XLM, 1),
            )),
        ]

    def place_offers(self):
        placed = 0
        for label, operation in self.offers():
            try:
                result = self._submit([operation])
            except TradeLinkError as e:
                logger.warning("%s/XLM offer (%s) failed: %s", self.issuer.asset.code, label, e)
                continue
            self.offer_hashes.append(result.hash)
            placed += 1
            logger.info("%s/XLM liquidity: %s offer created", self.issuer.asset.code, label)
        return placed

    def run(self):
        """Runs every step once. Never raises; a failure leaves the state at FAILED."""
        try:
            self.ensure_funded()
            self.ensure_self_funded()
            if self.place_offers() == 2:
                self.state = BootstrapState.LIQUIDITY_READY
            else:
                self.state = BootstrapState.FAILED
        except Exception:
            logger.exception("%s/XLM liquidity setup failed", self.issuer.asset.code)
            self.state = BootstrapState.FAILED
        return self.state

    def start(self):
        """Runs the bootstrap on a daemon thread so requests are served meanwhile."""
        self._thread = threading.Thread(target=self.run, name="liquidity-bootstrap", daemon=True)
        self._thread.start()
        return self._thread
