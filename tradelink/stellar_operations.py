# stellar_operations.py

import logging

import requests
from stellar_sdk import Asset, ChangeTrust, Keypair, Network, Payment
from stellar_sdk.exceptions import BaseHorizonError, ConnectionError as HorizonConnectionError, NotFoundError

from .assets import symbol_for
from .config import (
    FRIENDBOT_TIMEOUT,
    FRIENDBOT_URL,
    PAYMENT_HISTORY_LIMIT,
    STELLAR_NETWORK,
)
from .errors import (
    AccountNotFound,
    FundingFailed,
    IssuerNotFunded,
    MissingIssuer,
    NetworkUnavailable,
)
from .transactions import (
    base_fee_with_fallback,
    build_transaction,
    load_account,
    normalize_amount,
    signing_keypair,
    submit_transaction,
)

logger = logging.getLogger(__name__)


def get_network_passphrase(network=STELLAR_NETWORK):
    """Returns the network passphrase based on the STELLAR_NETWORK setting."""
    if network == "TESTNET":
        return Network.TESTNET_NETWORK_PASSPHRASE
    elif network == "PUBLIC":
        return Network.PUBLIC_NETWORK_PASSPHRASE
    else:
        raise ValueError("Invalid STELLAR_NETWORK configured.")


def generate_keypair():
    """Generates a new Stellar keypair."""
    return Keypair.random()


def fund_account_friendbot(public_key, friendbot_url=FRIENDBOT_URL):
    """Funds a Testnet account using Friendbot."""
    try:
        response = requests.get(friendbot_url, params={"addr": public_key}, timeout=FRIENDBOT_TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise NetworkUnavailable(f"Friendbot request error: {e}")
    if not response.ok:
        raise FundingFailed("Friendbot funding failed", detail=response.text)
    logger.info("Account %s funded by Friendbot", public_key)


def fetch_account(server, public_key):
    """Raw Horizon account record (balances, flags, ...)."""
    try:
        return server.accounts().account_id(public_key).call()
    except NotFoundError:
        raise AccountNotFound("Account not found", detail=public_key)
    except HorizonConnectionError as e:
        raise NetworkUnavailable(f"Horizon unreachable: {e}")
    except BaseHorizonError as e:
        raise NetworkUnavailable(f"Horizon error: {e}")


def find_balance(balances, asset):
    """Returns the balance record holding `asset`, or None."""
    for balance in balances:
        if asset.is_native():
            if balance.get("asset_type") == "native":
                return balance
        elif balance.get("asset_code") == asset.code and balance.get("asset_issuer") == asset.issuer:
            return balance
    return None


def describe_balance(balance):
    is_native = balance.get("asset_type") == "native"
    code = symbol_for(balance)
    issuer = balance.get("asset_issuer")
    return {
        "asset": code if is_native or not issuer else f"{code} ({issuer[:8]}…)",
        "assetCode": code,
        "assetIssuer": issuer,
        "balance": balance.get("balance"),
        "limit": balance.get("limit"),
        "isNative": is_native,
    }


def describe_payment(record, public_key):
    to = record.get("to", "")
    return {
        "id": record.get("id"),
        "type": record.get("type"),
        "from": record.get("from", ""),
        "to": to,
        "isIncoming": to == public_key,
        "amount": record.get("amount", "0"),
        "assetCode": symbol_for(record),
        "assetIssuer": record.get("asset_issuer"),
        "transactionHash": record.get("transaction_hash"),
        "createdAt": record.get("created_at"),
    }


def create_account(server, friendbot_url=FRIENDBOT_URL):
    """Generates a keypair, funds it through Friendbot and reports the opening balances."""
    keypair = generate_keypair()
    fund_account_friendbot(keypair.public_key, friendbot_url)
    account = fetch_account(server, keypair.public_key)
    balances = []
    for b in account.get("balances", []):
        if b.get("asset_type") == "native":
            asset = "XLM"
        else:
            asset = f"{b.get('asset_code', '')}:{b['asset_issuer']}" if b.get("asset_issuer") else b.get("asset_code", "")
        balances.append({"asset": asset, "balance": b.get("balance"), "limit": b.get("limit")})
    return {
        "publicKey": keypair.public_key,
        "secretKey": keypair.secret,
        "initialBalances": balances,
    }


def verify_login(server, public_key, secret_key):
    """The secret must derive the public key and the account must exist on the ledger."""
    keypair = signing_keypair(public_key, secret_key)
    fetch_account(server, keypair.public_key)
    return {"ok": True, "publicKey": keypair.public_key}


def account_summary(server, public_key, limit=PAYMENT_HISTORY_LIMIT):
    account = fetch_account(server, public_key)
    try:
        payments = server.payments().for_account(public_key).limit(limit).order(desc=True).call()
    except HorizonConnectionError as e:
        raise NetworkUnavailable(f"Horizon unreachable: {e}")
    records = payments.get("_embedded", {}).get("records", [])
    return {
        "balances": [describe_balance(b) for b in account.get("balances", [])],
        "paymentHistory": [describe_payment(r, public_key) for r in records],
    }


def add_trustline(server, registry, network_passphrase, public_key, secret_key,
                  asset_code, asset_issuer=None):
    """Lets the account hold asset_code; USDC and TZS always use their fixed issuers."""
    issuer = registry.issuer_for(asset_code) or asset_issuer
    if not issuer:
        raise MissingIssuer("assetIssuer required for non-XLM asset")

    keypair = signing_keypair(public_key, secret_key)
    account = load_account(server, keypair.public_key)
    asset = Asset(asset_code, issuer)
    envelope = build_transaction(
        account,
        [ChangeTrust(asset=asset)],
        keypair,
        network_passphrase,
        base_fee_with_fallback(server),
    )
    logger.info("Trustline %s:%s for %s", asset_code, issuer, keypair.public_key)
    return submit_transaction(server, envelope)


def issue_custom_asset(server, issuer, network_passphrase, destination, amount):
    """
    Sends freshly issued units of the custom asset from the in-memory issuer.
    The destination must already trust the asset.
    """
    amount = normalize_amount(amount)
    try:
        issuer_account = load_account(server, issuer.public_key)
    except AccountNotFound:
        raise IssuerNotFunded(
            f"{issuer.asset.code} issuer not funded. Fund it once with Friendbot: {issuer.public_key}"
        )
    envelope = build_transaction(
        issuer_account,
        [Payment(destination=destination, asset=issuer.asset, amount=amount)],
        issuer.keypair,
        network_passphrase,
        base_fee_with_fallback(server),
    )
    logger.info("Issuing %s %s to %s", amount, issuer.asset.code, destination)
    return submit_transaction(server, envelope)
