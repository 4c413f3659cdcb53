import json
from decimal import Decimal

import pytest
from stellar_sdk import Account, ChangeTrust, Keypair, ManageSellOffer, Network, Payment
from stellar_sdk.client.response import Response
from stellar_sdk.exceptions import BadRequestError, NotFoundError

from tradelink.app import create_app
from tradelink.liquidity import IssuerContext

PASSPHRASE = Network.TESTNET_NETWORK_PASSPHRASE


def horizon_error(cls, status, body):
    return cls(Response(status, json.dumps(body), {}, "https://horizon.test"))


def not_found():
    return horizon_error(NotFoundError, 404, {"status": 404, "title": "Resource Missing"})


def rejected(transaction="tx_failed", operations=None):
    return horizon_error(BadRequestError, 400, {
        "status": 400,
        "title": "Transaction Failed",
        "extras": {"result_codes": {"transaction": transaction, "operations": operations or []}},
    })


# -----------------------------
# Fake Horizon
# -----------------------------

class FakeCall:
    def __init__(self, fn):
        self._fn = fn

    def call(self):
        return self._fn()


class FakeAccountsCall:
    def __init__(self, horizon):
        self.horizon = horizon
        self._id = None

    def account_id(self, account_id):
        self._id = account_id
        return self

    def call(self):
        self.horizon.calls.append(("account", self._id))
        if self._id not in self.horizon.ledger:
            raise not_found()
        return {"id": self._id, "balances": [dict(b) for b in self.horizon.ledger[self._id]]}


class FakePaymentsCall:
    def __init__(self, horizon):
        self.horizon = horizon
        self._id = None
        self._limit = None

    def for_account(self, account_id):
        self._id = account_id
        return self

    def limit(self, limit):
        self._limit = limit
        return self

    def order(self, desc=True):
        return self

    def call(self):
        records = [r for r in self.horizon.payment_records if self._id in (r.get("from"), r.get("to"))]
        return {"_embedded": {"records": list(reversed(records))[: self._limit]}}


class FakeHorizon:
    """
    In-memory stand-in for stellar_sdk.Server.

    Keeps balances per account and applies ChangeTrust, Payment and
    ManageSellOffer operations on submit; everything else is recorded only.
    """

    def __init__(self):
        self.ledger = {}
        self.sequences = {}
        self.submitted = []
        self.offers = []
        self.payment_records = []
        self.calls = []
        self.paths = []
        self.path_error = None
        self.books = {}
        self.book_errors = {}
        self.base_fee = 100
        self.fee_error = None
        self.submit_errors = []
        self.load_errors = []
        self.successful = True

    # -- setup helpers
    def fund(self, public_key, xlm="10000.0000000"):
        self.ledger[public_key] = [{"asset_type": "native", "balance": xlm}]
        self.sequences[public_key] = 1000

    def balance_of(self, public_key, code, issuer):
        for b in self.ledger[public_key]:
            if b.get("asset_code") == code and b.get("asset_issuer") == issuer:
                return Decimal(b["balance"])
        return None

    # -- Server API
    def fetch_base_fee(self):
        if self.fee_error is not None:
            raise self.fee_error
        return self.base_fee

    def load_account(self, account_id):
        self.calls.append(("load_account", account_id))
        if self.load_errors:
            raise self.load_errors.pop(0)
        if account_id not in self.ledger:
            raise not_found()
        return Account(account_id, self.sequences[account_id])

    def accounts(self):
        return FakeAccountsCall(self)

    def payments(self):
        return FakePaymentsCall(self)

    def strict_receive_paths(self, source, destination_asset, destination_amount):
        self.calls.append(("strict_receive_paths", source, destination_asset, destination_amount))

        def result():
            if self.path_error is not None:
                raise self.path_error
            return {"_embedded": {"records": self.paths}}

        return FakeCall(result)

    def orderbook(self, selling, buying):
        key = (selling.code, buying.code)
        self.calls.append(("orderbook", key))

        def result():
            if key in self.book_errors:
                raise self.book_errors[key]
            return self.books.get(key, {"bids": [], "asks": []})

        return FakeCall(result)

    def submit_transaction(self, envelope):
        self.submitted.append(envelope)
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        source = envelope.transaction.source.account_id
        for op in envelope.transaction.operations:
            self._apply(source, op)
        self.sequences[source] = envelope.transaction.sequence
        return {"hash": f"hash{len(self.submitted)}", "successful": self.successful}

    def _apply(self, source, op):
        if isinstance(op, ChangeTrust):
            if self.balance_of(source, op.asset.code, op.asset.issuer) is None:
                self.ledger[source].append({
                    "asset_type": "credit_alphanum4",
                    "asset_code": op.asset.code,
                    "asset_issuer": op.asset.issuer,
                    "balance": "0.0000000",
                    "limit": op.limit or "922337203685.4775807",
                })
        elif isinstance(op, Payment):
            destination = op.destination.account_id
            self.payment_records.append({
                "id": str(len(self.payment_records) + 1),
                "type": "payment",
                "from": source,
                "to": destination,
                "amount": op.amount,
                "asset_type": "native" if op.asset.is_native() else "credit_alphanum4",
                "asset_code": None if op.asset.is_native() else op.asset.code,
                "asset_issuer": op.asset.issuer,
                "transaction_hash": f"hash{len(self.submitted)}",
                "created_at": "2026-10-19T00:00:00Z",
            })
            if op.asset.is_native():
                return
            for b in self.ledger[destination]:
                if b.get("asset_code") == op.asset.code and b.get("asset_issuer") == op.asset.issuer:
                    b["balance"] = str(Decimal(b["balance"]) + Decimal(op.amount))
                    return
            raise rejected(operations=["op_no_trust"])
        elif isinstance(op, ManageSellOffer):
            self.offers.append(op)


class FakeFriendbotResponse:
    def __init__(self, ok=True, text="{}"):
        self.ok = ok
        self.text = text


# -----------------------------
# Pytest fixtures
# -----------------------------

@pytest.fixture()
def horizon():
    return FakeHorizon()


@pytest.fixture()
def issuer():
    return IssuerContext.generate("TZS")


@pytest.fixture()
def funded_pair(horizon):
    sender, receiver = Keypair.random(), Keypair.random()
    horizon.fund(sender.public_key)
    horizon.fund(receiver.public_key)
    return sender, receiver


@pytest.fixture()
def friendbot(monkeypatch, horizon):
    """Replaces requests.get in the Friendbot call; funded keys are recorded."""
    funded = []

    def fake_get(url, params=None, timeout=None):
        funded.append(params["addr"])
        horizon.fund(params["addr"])
        return FakeFriendbotResponse()

    monkeypatch.setattr("tradelink.stellar_operations.requests.get", fake_get)
    return funded


@pytest.fixture()
def app(horizon, issuer):
    app = create_app(server=horizon, issuer=issuer, network_passphrase=PASSPHRASE)
    app.testing = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()
