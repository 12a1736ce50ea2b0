"""
Utility modules for the valuation engine.
"""

from .formatting import (
    format_currency,
    format_man_yen,
    format_percent,
    format_price_per_sqm,
    format_price_range,
)
from .config import Config

__all__ = [
    "format_currency",
    "format_man_yen",
    "format_percent",
    "format_price_per_sqm",
    "format_price_range",
    "Config",
]
