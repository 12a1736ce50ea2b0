"""
Comparable sources for the valuation engine.

Available sources:
- ReinfolibComparableSource: Live MLIT transaction-price data (XIT001)
- SyntheticComparableSource: Seeded generator used as a fallback
"""

from .base import ComparableSource, periods_for
from .reinfolib import ReinfolibComparableSource, ReinfolibRecordParser
from .synthetic import SyntheticComparableSource

__all__ = [
    "ComparableSource",
    "periods_for",
    "ReinfolibComparableSource",
    "ReinfolibRecordParser",
    "SyntheticComparableSource",
]
