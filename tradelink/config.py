# config.py

import os

from dotenv import dotenv_values

# Values from a local .env file, then the process environment, win over the defaults below.
_env = {**dotenv_values(".env"), **os.environ}


def _setting(name, default):
    value = _env.get(name)
    return default if value in (None, "") else value


def _flag(name, default):
    value = _env.get(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Stellar Network Configuration
# Use 'TESTNET' for testing or 'PUBLIC' for the live network
STELLAR_NETWORK = _setting("STELLAR_NETWORK", "TESTNET")  # Or "PUBLIC"

# Horizon server URLs
HORIZON_TESTNET_URL = "https://horizon-testnet.stellar.org"
HORIZON_PUBLIC_URL = "https://horizon.stellar.org"

# Determine Horizon URL based on selected network
HORIZON_URL = _setting(
    "HORIZON_URL",
    HORIZON_TESTNET_URL if STELLAR_NETWORK == "TESTNET" else HORIZON_PUBLIC_URL,
)

# --- Friendbot (for Testnet only) ---
FRIENDBOT_URL = _setting("FRIENDBOT_URL", "https://friendbot.stellar.org")
FRIENDBOT_TIMEOUT = 30  # seconds

# --- Assets ---
NATIVE_CODE = "XLM"
USDC_CODE = "USDC"
# Circle's testnet USDC issuer
USDC_ISSUER = _setting("USDC_ISSUER", "GBBD47IF6LWK7P7MDEVSCWR7DPUWV3NY3DTQEVFL4NAT4AQH3ZLLFLA5")

# Custom asset, issued by a keypair generated at process start (memory only).
ASSET_CODE = "TZS"  # 1-12 alphanumeric characters

# Demo rate when the orderbook has no liquidity: 1 XLM = TZS_PER_XLM TZS
TZS_PER_XLM = 1000

# --- Liquidity bootstrap ---
BOOTSTRAP_ENABLED = _flag("BOOTSTRAP_ENABLED", True)
ISSUER_TRUST_LIMIT = "1000000000"
ISSUER_SELF_SUPPLY = "1000000"
# Minting is skipped when the issuer already holds at least this much.
ISSUER_MIN_BALANCE = 500000
SELL_TZS_OFFER_AMOUNT = "500000"
SELL_XLM_OFFER_AMOUNT = "1000"
BOOTSTRAP_WAIT_TIMEOUT = 20.0  # seconds to wait for a step to show up on the ledger
BOOTSTRAP_POLL_INTERVAL = 1.0

# --- Transactions ---
BASE_FEE_FALLBACK = 100  # stroops
TRANSACTION_TIMEOUT = 30  # seconds of ledger time
PAYMENT_HISTORY_LIMIT = 10

# --- HTTP server ---
HOST = _setting("HOST", "0.0.0.0")
PORT = int(_setting("PORT", "3000"))
LOG_LEVEL = _setting("LOG_LEVEL", "INFO")
