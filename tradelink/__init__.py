"""TradeLink: Stellar testnet payments and XLM/USDC/TZS conversions."""

__version__ = "0.1.0"
