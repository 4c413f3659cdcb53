"""
Console logging for TradeLink.

Modules log through `logging.getLogger(__name__)`; `configure_logging` hooks
the root logger up to a Rich console handler once per process.
"""

import logging
import threading

from rich.console import Console
from rich.logging import RichHandler

from .config import LOG_LEVEL

_lock = threading.Lock()
_configured = False


def configure_logging(level=None):
    global _configured
    with _lock:
        if _configured:
            return
        numeric_level = getattr(logging, str(level or LOG_LEVEL).upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(numeric_level)
        root_logger.handlers.clear()

        handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
            markup=False,
        )
        handler.setLevel(numeric_level)
        handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
        root_logger.addHandler(handler)

        # Horizon and Friendbot calls are noisy at INFO
        for lib in ("urllib3", "stellar_sdk"):
            logging.getLogger(lib).setLevel(logging.WARNING)

        _configured = True
