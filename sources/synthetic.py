"""
Synthetic comparable source.

Generates plausible transactions around the target property when no live
data is available. Output is reproducible for a seeded random.Random.
"""

import random
from datetime import date, timedelta
from typing import List

from core.comp_engine.models import PropertyUse, Purpose, RawComparable, ValuationRequest
from core.comp_engine.regions import prefecture_name
from core.comp_engine.similarity import parse_address

from .base import ComparableSource


# =============================================================================
# Configuration
# =============================================================================

# Base price per sqm (yen) by building use
BASE_PRICE_PER_SQM = {
    PropertyUse.RESIDENTIAL: 600_000,
    PropertyUse.COMMERCIAL: 500_000,
    PropertyUse.OFFICE: 400_000,
    PropertyUse.WAREHOUSE: 200_000,
}

PURPOSE_FACTORS = {
    Purpose.SALE: 1.0,
    Purpose.PURCHASE: 0.9,
    Purpose.RENTAL: 0.9,
}

# Depreciation: 2% per year, never below half value
AGE_DEPRECIATION_RATE = 0.02
AGE_ADJUSTMENT_FLOOR = 0.5

# Per-record variation around the target
ATTRIBUTE_VARIATION = 0.3
PRICE_VARIATION = (0.7, 1.3)

MAX_CHOME = 5
MAX_BLOCK = 30


def age_adjustment(age_years: int) -> float:
    return max(AGE_ADJUSTMENT_FLOOR, 1.0 - age_years * AGE_DEPRECIATION_RATE)


class SyntheticComparableSource(ComparableSource):
    """
    Seeded generator of comparables shaped like the target property.

    Built per request: the target, the sample size and the random generator
    are all request-scoped.
    """

    source_id = "synthetic"

    def __init__(
        self,
        target: ValuationRequest,
        sample_size: int,
        rng: random.Random = None,
        region_code: str = "",
        periods_back: int = 10,
        reference_date: date = None,
    ):
        """
        Initialize generator.

        Args:
            target: The property being valued
            sample_size: Number of records fetch() returns
            rng: Random generator (seeded for reproducible output)
            region_code: Region the records are tagged with
            periods_back: Years before the reference year covered by dates
            reference_date: Date defining the current period (default: today)
        """
        super().__init__(reference_date=reference_date)
        self._target = target
        self._sample_size = max(0, sample_size)
        self._rng = rng or random.Random()
        self._region_code = region_code
        self._periods_back = max(0, periods_back)
        self._address_prefix = self._build_address_prefix()

    @property
    def sample_size(self) -> int:
        return self._sample_size

    def _build_address_prefix(self) -> str:
        parts = parse_address(self._target.address)
        prefecture = parts.prefecture or prefecture_name(self._region_code) or ""
        city = parts.city or ""
        locality = parts.locality or ""

        if not (prefecture or city or locality):
            return self._target.address.strip()
        return f"{prefecture}{city}{locality}"

    def fetch_period(self, region_code: str, year: int) -> List[RawComparable]:
        """Generate sample_size records dated within a single year."""
        start = date(year, 1, 1)
        end = min(date(year, 12, 31), self._reference_date)
        if end < start:
            end = start
        return [self._generate(region_code, start, end) for _ in range(self._sample_size)]

    def fetch(self, region_code: str = None, periods_back: int = None) -> List[RawComparable]:
        """Generate exactly sample_size records spread over the window."""
        region_code = region_code if region_code is not None else self._region_code
        periods_back = periods_back if periods_back is not None else self._periods_back

        start = date(self._reference_date.year - periods_back, 1, 1)
        end = self._reference_date
        return [self._generate(region_code, start, end) for _ in range(self._sample_size)]

    def _generate(self, region_code: str, start: date, end: date) -> RawComparable:
        target = self._target
        rng = self._rng

        area = round(target.area_sqm * rng.uniform(1 - ATTRIBUTE_VARIATION, 1 + ATTRIBUTE_VARIATION), 1)
        age = max(0, int(round(target.age_years * rng.uniform(1 - ATTRIBUTE_VARIATION, 1 + ATTRIBUTE_VARIATION))))

        price = (
            area
            * BASE_PRICE_PER_SQM[target.property_use]
            * age_adjustment(age)
            * PURPOSE_FACTORS[target.purpose]
            * rng.uniform(*PRICE_VARIATION)
        )

        span_days = (end - start).days
        transaction_date = start + timedelta(days=rng.randint(0, max(0, span_days)))

        address = f"{self._address_prefix}{rng.randint(1, MAX_CHOME)}-{rng.randint(1, MAX_BLOCK)}"

        return RawComparable(
            address=address,
            price=int(round(price)),
            area_sqm=area,
            age_years=age,
            purpose=target.purpose,
            transaction_date=transaction_date,
            region_code=region_code,
            source_id=self.source_id,
        )
