"""
Statistical Aggregator

Turns corrected comparable prices into summary statistics, a rounded
price range and a confidence label.

Pipeline:
1. Mean and median over every corrected price
2. IQR fence to remove outliers
3. Filtered mean, population standard deviation, coefficient of variation
4. 95% normal-approximation interval around the filtered mean
"""

import math
from typing import List, Sequence, Tuple

from .errors import InsufficientDataError
from .models import (
    AggregateStatistics,
    ConfidenceInterval,
    ConfidenceLabel,
    CorrectedComparable,
)


# =============================================================================
# Configuration Constants
# =============================================================================

IQR_MULTIPLIER = 1.5
Z_SCORE_95 = 1.96

# Price ranges are reported in whole 10,000-yen units (man-yen)
PRICE_ROUNDING_UNIT = 10_000

# (exclusive upper bound on sample count, label)
CONFIDENCE_BANDS = (
    (10, ConfidenceLabel.LOW),
    (30, ConfidenceLabel.MEDIUM),
    (100, ConfidenceLabel.HIGH),
)


def median(values: Sequence[float]) -> float:
    ordered = sorted(values)
    n = len(ordered)
    middle = n // 2
    if n % 2 == 0:
        return (ordered[middle - 1] + ordered[middle]) / 2
    return ordered[middle]


def remove_outliers(values: Sequence[float]) -> List[float]:
    """
    Drop values outside the 1.5 x IQR fence.

    Quartiles are taken by index: Q1 = sorted[floor(n * 0.25)],
    Q3 = sorted[floor(n * 0.75)]. Input order is preserved.
    """
    if not values:
        return []

    ordered = sorted(values)
    n = len(ordered)
    q1 = ordered[int(n * 0.25)]
    q3 = ordered[int(n * 0.75)]
    iqr = q3 - q1
    lower = q1 - IQR_MULTIPLIER * iqr
    upper = q3 + IQR_MULTIPLIER * iqr

    return [v for v in values if lower <= v <= upper]


def floor_to_unit(value: float, unit: int = PRICE_ROUNDING_UNIT) -> int:
    return int(math.floor(value / unit) * unit)


class StatisticalAggregator:
    """
    Aggregates corrected prices into statistics and a price range.

    Stateless and deterministic: the same input always yields the same output.
    """

    def aggregate(self, comparables: Sequence[CorrectedComparable]) -> AggregateStatistics:
        """
        Compute statistics over corrected prices.

        Args:
            comparables: Corrected comparables (at least one)

        Returns:
            AggregateStatistics

        Raises:
            InsufficientDataError: If no comparables are supplied
        """
        if not comparables:
            raise InsufficientDataError("Cannot aggregate an empty comparable set")

        prices = [float(c.corrected_price) for c in comparables]
        mean_price = sum(prices) / len(prices)
        median_price = median(prices)

        filtered = remove_outliers(prices)
        n_filtered = len(filtered)
        filtered_mean = sum(filtered) / n_filtered

        variance = sum((p - filtered_mean) ** 2 for p in filtered) / n_filtered
        std_dev = math.sqrt(variance)
        cv = (std_dev / filtered_mean * 100) if filtered_mean else 0.0

        margin = Z_SCORE_95 * std_dev / math.sqrt(n_filtered)

        return AggregateStatistics(
            mean_price=int(round(mean_price)),
            median_price=int(round(median_price)),
            filtered_mean_price=int(round(filtered_mean)),
            std_dev=std_dev,
            coefficient_of_variation=cv,
            confidence_interval=ConfidenceInterval(
                lower=filtered_mean - margin,
                upper=filtered_mean + margin,
                margin_of_error=margin,
            ),
            sample_count=len(prices),
            filtered_sample_count=n_filtered,
            filtered_min_price=int(min(filtered)),
        )

    @staticmethod
    def price_range(stats: AggregateStatistics) -> Tuple[int, int]:
        """
        Derive the reported (low, high) range from the confidence interval.

        Both bounds are floored to 10,000 yen. The low bound never drops below
        the smallest retained price, and high is never below low.
        """
        low = floor_to_unit(stats.confidence_interval.lower)
        high = floor_to_unit(stats.confidence_interval.upper)

        low = max(low, floor_to_unit(stats.filtered_min_price))
        high = max(high, low)

        return low, high

    @staticmethod
    def confidence_label(sample_count: int) -> ConfidenceLabel:
        """Map sample size to a confidence label."""
        for upper, label in CONFIDENCE_BANDS:
            if sample_count < upper:
                return label
        return ConfidenceLabel.VERY_HIGH
