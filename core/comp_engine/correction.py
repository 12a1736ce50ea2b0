"""
Correction Model

Adjusts each comparable's price for dissimilarity with the target:
distance, floor area and building age. Factors are multiplicative.
"""

from typing import Iterable, List, Sequence

from .models import CorrectedComparable, RawComparable, ValuationRequest


# =============================================================================
# Configuration Constants
# =============================================================================

# Distance: linear decay of up to 30% per 2 km, floored
DISTANCE_DECAY_METRES = 2000.0
DISTANCE_DECAY_RATE = 0.3
DISTANCE_FACTOR_FLOOR = 0.7
DISTANCE_FACTOR_CAP = 1.0

# Area: tolerance band around a 1:1 ratio
AREA_RATIO_TOLERANCE = 0.2
AREA_FACTOR_COMP_SMALLER = 0.9
AREA_FACTOR_COMP_LARGER = 1.1

# Age: (maximum age difference in years, factor)
AGE_FACTOR_BANDS = (
    (5, 1.0),
    (10, 0.95),
    (20, 0.9),
)
AGE_FACTOR_FLOOR = 0.85


def distance_factor(distance_km: float) -> float:
    """Factor in [0.7, 1.0], decreasing with distance."""
    raw = 1.0 - (distance_km * 1000.0 / DISTANCE_DECAY_METRES) * DISTANCE_DECAY_RATE
    return max(DISTANCE_FACTOR_FLOOR, min(DISTANCE_FACTOR_CAP, raw))


def area_factor(target_area_sqm: float, comparable_area_sqm: float) -> float:
    """
    Factor for floor-area mismatch.

    With r = target / comparable: 1.0 when r is within 20% of 1,
    0.9 when the comparable is smaller, 1.1 when it is larger.
    """
    if comparable_area_sqm <= 0:
        return 1.0

    ratio = target_area_sqm / comparable_area_sqm
    if abs(ratio - 1.0) <= AREA_RATIO_TOLERANCE:
        return 1.0
    if ratio > 1.0:
        return AREA_FACTOR_COMP_SMALLER
    return AREA_FACTOR_COMP_LARGER


def age_factor(age_difference_years: int) -> float:
    """Factor for building-age mismatch, stepped by the absolute difference."""
    diff = abs(age_difference_years)
    for max_diff, factor in AGE_FACTOR_BANDS:
        if diff <= max_diff:
            return factor
    return AGE_FACTOR_FLOOR


class CorrectionModel:
    """Applies distance, area and age corrections to comparables."""

    def correct(
        self,
        target: ValuationRequest,
        comparable: RawComparable,
        distance_km: float,
    ) -> CorrectedComparable:
        """
        Correct a single comparable against the target.

        Args:
            target: The property being valued
            comparable: Observed transaction
            distance_km: Estimated distance between the two

        Returns:
            CorrectedComparable with every factor and the corrected price
        """
        d_factor = distance_factor(distance_km)
        a_factor = area_factor(target.area_sqm, comparable.area_sqm)
        g_factor = age_factor(target.age_years - comparable.age_years)
        total = d_factor * a_factor * g_factor

        return CorrectedComparable(
            comparable=comparable,
            pseudo_distance_km=distance_km,
            distance_factor=d_factor,
            area_factor=a_factor,
            age_factor=g_factor,
            total_factor=total,
            corrected_price=int(round(comparable.price * total)),
        )

    def correct_all(
        self,
        target: ValuationRequest,
        comparables: Iterable[RawComparable],
        distances_km: Sequence[float],
    ) -> List[CorrectedComparable]:
        """Correct comparables pairwise with their distances, preserving order."""
        comparables = list(comparables)
        if len(comparables) != len(distances_km):
            raise ValueError("comparables and distances_km must have the same length")

        return [
            self.correct(target, comp, distance)
            for comp, distance in zip(comparables, distances_km)
        ]
