"""
Comparable Filters

Implements the filters applied to comparable transactions:
- Validity (finite price and area above their floors, address present,
  age known)
- Search radius (with relaxation when nothing lies inside the radius)
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .models import CorrectedComparable, RawComparable

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

# Records at or below these values are treated as noise or partial entries
MIN_VALID_PRICE = 1_000_000  # yen
MIN_VALID_AREA_SQM = 20.0


def _is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not isinstance(value, float) or math.isfinite(value)


@dataclass
class FilterConfig:
    """Configuration for validity filtering."""
    min_price: int = MIN_VALID_PRICE
    min_area_sqm: float = MIN_VALID_AREA_SQM


class ComparableValidityFilter:
    """
    Drops malformed or low-quality raw comparables.

    A record must pass ALL checks to be kept.
    """

    def __init__(self, config: FilterConfig = None):
        self._config = config or FilterConfig()

    def is_valid(self, comp: RawComparable) -> bool:
        """Check a single record against every validity rule."""
        if not _is_finite_number(comp.price) or comp.price <= self._config.min_price:
            return False

        if not _is_finite_number(comp.area_sqm) or comp.area_sqm <= self._config.min_area_sqm:
            return False

        if not isinstance(comp.address, str) or not comp.address.strip():
            return False

        if not isinstance(comp.age_years, int) or comp.age_years < 0:
            return False

        return True

    def filter(self, candidates: Iterable[RawComparable]) -> List[RawComparable]:
        """Return the valid records, preserving input order."""
        candidates = list(candidates)
        valid = [c for c in candidates if self.is_valid(c)]

        dropped = len(candidates) - len(valid)
        if dropped:
            logger.debug("Validity filter dropped %d of %d records", dropped, len(candidates))

        return valid


def filter_by_radius(
    comps: List[CorrectedComparable],
    radius_km: float,
) -> Tuple[List[CorrectedComparable], bool]:
    """
    Keep comparables whose distance lies within the search radius.

    Returns:
        Tuple of:
        - Comparables within the radius (or all of them, if none are)
        - Whether the radius had to be relaxed
    """
    within = [c for c in comps if c.pseudo_distance_km <= radius_km]

    if within or not comps:
        return within, False

    logger.info(
        "No comparables within %.1f km, keeping all %d records", radius_km, len(comps)
    )
    return list(comps), True
