"""
Base comparable source interface.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import List

from core.comp_engine.errors import DataSourceUnavailableError
from core.comp_engine.models import RawComparable

logger = logging.getLogger(__name__)


def periods_for(periods_back: int, reference_date: date = None) -> List[int]:
    """
    Return the yearly periods covered by a trailing window.

    Args:
        periods_back: Number of years before the current one to include
        reference_date: Date defining the current year (default: today)

    Returns:
        Years from current_year - periods_back to current_year, ascending.
    """
    current_year = (reference_date or date.today()).year
    return list(range(current_year - max(0, periods_back), current_year + 1))


class ComparableSource(ABC):
    """Abstract base class for providers of comparable transactions."""

    source_id: str = "base"

    def __init__(self, reference_date: date = None):
        """
        Initialize source.

        Args:
            reference_date: Date defining the current period (default: today)
        """
        self._reference_date = reference_date or date.today()

    @property
    def reference_date(self) -> date:
        return self._reference_date

    @property
    def is_available(self) -> bool:
        """Whether the source can be queried at all."""
        return True

    @abstractmethod
    def fetch_period(self, region_code: str, year: int) -> List[RawComparable]:
        """
        Fetch comparables for one region and one yearly period.

        Args:
            region_code: Two-digit prefecture code.
            year: Calendar year of the period.

        Returns:
            List of RawComparable objects (possibly empty).

        Raises:
            DataSourceUnavailableError: On network failure, timeout,
                non-2xx response, rate limiting or an undecodable body.
        """

    def periods_for(self, periods_back: int) -> List[int]:
        return periods_for(periods_back, self._reference_date)

    def fetch(self, region_code: str, periods_back: int) -> List[RawComparable]:
        """
        Fetch comparables for every period in the trailing window.

        Per-period failures are logged and skipped, never retried.
        """
        results: List[RawComparable] = []

        for year in self.periods_for(periods_back):
            try:
                results.extend(self.fetch_period(region_code, year))
            except DataSourceUnavailableError as exc:
                logger.warning("Skipping period %s for region %s: %s", year, region_code, exc.reason)

        return results
