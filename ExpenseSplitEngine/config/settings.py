"""
Settings Module

Reads configuration for the expense split engine from a .env file
(or real environment variables).

Variables:
    CURRENCY_SYMBOL      : symbol used when formatting amounts (default: ₹)
    MINOR_UNIT           : smallest currency unit, the tolerance used when a
                           split is checked against its total (default: 0.01)
    FIREBASE_CREDENTIALS : path to a Firebase service-account JSON file
                           (default: unset, application default credentials)
    LOG_LEVEL            : logging level name (default: INFO)
"""

import logging
import os
from decimal import Decimal

from dotenv import load_dotenv

_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(_root, ".env"))


CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₹")
MINOR_UNIT: Decimal = Decimal(os.getenv("MINOR_UNIT", "0.01"))
FIREBASE_CREDENTIALS: str | None = os.getenv("FIREBASE_CREDENTIALS") or None
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging for the application entry points.

    Args:
        level: Level name to apply; defaults to LOG_LEVEL.
    """
    logging.basicConfig(
        level=getattr(logging, level or LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
