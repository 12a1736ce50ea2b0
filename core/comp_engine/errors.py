"""
Error taxonomy for the valuation engine.

Only InvalidValuationRequestError reaches callers of evaluate(); the others
are raised by components and recovered inside the pipeline.
"""

from typing import List, Optional


class ValuationError(Exception):
    """Base class for valuation engine errors."""


class DataSourceUnavailableError(ValuationError):
    """A single comparable fetch failed (network, timeout, non-2xx, bad body)."""

    def __init__(self, reason: str, region_code: str = "", year: Optional[int] = None):
        self.reason = reason
        self.region_code = region_code
        self.year = year
        location = f"region {region_code}" if region_code else "unknown region"
        if year is not None:
            location = f"{location}, {year}"
        super().__init__(f"Comparable source unavailable ({location}): {reason}")


class InsufficientDataError(ValuationError):
    """Aggregation was attempted on an empty comparable set."""


class InvalidValuationRequestError(ValueError):
    """
    Raised when a valuation request fails validation.

    Carries every problem found so the caller can report them together.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid valuation request: {'; '.join(self.errors)}")
