# market.py

import logging

from stellar_sdk.exceptions import BaseHorizonError, ConnectionError as HorizonConnectionError

from .config import ASSET_CODE, NATIVE_CODE, TZS_PER_XLM, USDC_CODE

logger = logging.getLogger(__name__)

MARKET_PAIRS = (
    (NATIVE_CODE, USDC_CODE),
    (NATIVE_CODE, ASSET_CODE),
    (USDC_CODE, ASSET_CODE),
)

# Documented rates used when a book has no liquidity at all.
FALLBACK_RATES = {
    (NATIVE_CODE, ASSET_CODE): TZS_PER_XLM,
}


def fmt6(value):
    return f"{value:.6f}"


def mid_price(best_bid, best_ask):
    """Mean of both sides; a one-sided book uses the side it has."""
    if best_bid and best_ask:
        return fmt6((float(best_bid) + float(best_ask)) / 2)
    return best_bid or best_ask or None


def exchange_rate_text(base, counter, mid):
    return f"1 {base} = {mid} {counter}" if mid else None


def empty_rate(base, counter):
    return {
        "pair": f"{base}/{counter}",
        "base": base,
        "counter": counter,
        "bestBid": None,
        "bestAsk": None,
        "mid": None,
        "exchangeRate": None,
    }


def inverse_rate(rate):
    """Derived from the forward book; the reverse book is never queried."""
    inv = 1 / float(rate["mid"])
    mid = fmt6(inv)
    return {
        "pair": f"{rate['counter']}/{rate['base']}",
        "base": rate["counter"],
        "counter": rate["base"],
        "bestBid": fmt6(1 / float(rate["bestAsk"])) if rate["bestAsk"] else None,
        "bestAsk": fmt6(1 / float(rate["bestBid"])) if rate["bestBid"] else None,
        "mid": mid,
        "exchangeRate": exchange_rate_text(rate["counter"], rate["base"], mid),
    }


class MarketRateAggregator:
    def __init__(self, server, registry, pairs=MARKET_PAIRS, fallback_rates=None):
        self.server = server
        self.registry = registry
        self.pairs = pairs
        self.fallback_rates = FALLBACK_RATES if fallback_rates is None else fallback_rates

    def book_rate(self, base, counter):
        rate = empty_rate(base, counter)
        try:
            book = self.server.orderbook(self.registry.resolve(base), self.registry.resolve(counter)).call()
        except (BaseHorizonError, HorizonConnectionError) as e:
            logger.warning("Orderbook %s/%s unavailable: %s", base, counter, e)
            rate["error"] = str(e)
            return rate
        bids = book.get("bids") or []
        asks = book.get("asks") or []
        rate["bestBid"] = bids[0]["price"] if bids else None
        rate["bestAsk"] = asks[0]["price"] if asks else None
        rate["mid"] = mid_price(rate["bestBid"], rate["bestAsk"])
        rate["exchangeRate"] = exchange_rate_text(base, counter, rate["mid"])
        return rate

    def apply_fallback(self, rate):
        key = (rate["base"], rate["counter"])
        if rate["mid"] or key not in self.fallback_rates:
            return rate
        rate["mid"] = str(self.fallback_rates[key])
        rate["exchangeRate"] = exchange_rate_text(rate["base"], rate["counter"], rate["mid"])
        return rate

    def rates(self):
        rates = []
        for base, counter in self.pairs:
            rate = self.apply_fallback(self.book_rate(base, counter))
            rates.append(rate)
            if rate["mid"] and float(rate["mid"]) > 0:
                rates.append(inverse_rate(rate))
        return rates
