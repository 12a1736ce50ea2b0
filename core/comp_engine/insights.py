"""
Market Insight Analyzer

Derives qualitative labels and readable insight bullets from corrected
comparables:
- Price trend (recent vs older comparables)
- Market temperature (price-per-sqm band)
- Investment value (additive rubric)
- Market features (volume, location premium, age depreciation, area efficiency)
- Data diversity and the recommendations that follow from it
- Insight bullets (sample adequacy, price band, building age, diversity, provenance)

Every label comes from one of the tables below.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

from utils.formatting import format_price_per_sqm

from .models import (
    CorrectedComparable,
    DataDiversity,
    DataOrigin,
    FeatureLevel,
    InvestmentValue,
    MarketFeatures,
    MarketTrend,
    PriceTrend,
    ValuationRequest,
)


# =============================================================================
# Configuration Constants
# =============================================================================

# Price trend
MIN_COMPS_FOR_TREND = 5
TREND_SLICE_FRACTION = 0.3
TREND_THRESHOLD_PERCENT = 5.0

# Market temperature: (exclusive lower bound on yen/sqm, label)
MARKET_TREND_BANDS = (
    (200_000, MarketTrend.HOT),
    (150_000, MarketTrend.WARM),
    (100_000, MarketTrend.STABLE),
)

# Investment rubric: (points, criterion over price/sqm, target age, sample size)
INVESTMENT_PRICE_BAND = (120_000, 180_000)
INVESTMENT_MAX_AGE_YEARS = 15
INVESTMENT_MIN_SAMPLE = 20

INVESTMENT_RUBRIC: Tuple[Tuple[int, Callable[[float, int, int], bool]], ...] = (
    (2, lambda ppsqm, age, n: INVESTMENT_PRICE_BAND[0] <= ppsqm <= INVESTMENT_PRICE_BAND[1]),
    (2, lambda ppsqm, age, n: age <= INVESTMENT_MAX_AGE_YEARS),
    (1, lambda ppsqm, age, n: n >= INVESTMENT_MIN_SAMPLE),
)

# Investment value: (inclusive lower bound on score, label)
INVESTMENT_VALUE_BANDS = (
    (4, InvestmentValue.HIGH),
    (2, InvestmentValue.MEDIUM),
)

# Market features
MIN_COMPS_FOR_VOLUME = 10

# Transactions per active month: (exclusive lower bound, label)
VOLUME_HIGH_BANDS = ((5, FeatureLevel.HIGH),)
# Transactions per active month: (exclusive upper bound, label)
VOLUME_LOW_BANDS = ((2, FeatureLevel.LOW),)

# Mean distance in km: (exclusive upper bound, label)
LOCATION_PREMIUM_BANDS = (
    (0.3, FeatureLevel.HIGH),
    (0.6, FeatureLevel.MEDIUM),
)

# Mean comparable age in years: (exclusive upper bound, label)
AGE_DEPRECIATION_BANDS = (
    (5, FeatureLevel.LOW),
    (15, FeatureLevel.MEDIUM),
)

# Mean corrected yen/sqm of the comparables: (exclusive lower bound, label)
AREA_EFFICIENCY_BANDS = (
    (800_000, FeatureLevel.HIGH),
    (500_000, FeatureLevel.MEDIUM),
)

# Diversity bucket widths
AREA_BUCKET_SQM = 10
AGE_BUCKET_YEARS = 5
DISTANCE_BUCKET_KM = 0.5

# Recommendations: (measure, minimum, text) applied when measure < minimum
RECOMMENDED_SAMPLE_SIZE = 500
RECOMMENDATION_RULES = (
    ("sample_count", RECOMMENDED_SAMPLE_SIZE,
     "Collect more transaction data to improve reliability."),
    ("area_bands", 5,
     "Broaden the search to cover a wider range of floor areas."),
    ("age_bands", 3,
     "Broaden the search to cover a wider range of building ages."),
)

# Insight thresholds
ADEQUATE_SAMPLE_SIZE = 20
HIGH_PRICE_PER_SQM = 200_000
LOW_PRICE_PER_SQM = 100_000
NEW_BUILDING_MAX_AGE = 10
OLD_BUILDING_MIN_AGE = 25


def _first_above(value: float, bands: Sequence[Tuple[float, Any]], default: Any) -> Any:
    """Label of the first band whose bound the value exceeds."""
    for bound, label in bands:
        if value > bound:
            return label
    return default


def _first_at_least(value: float, bands: Sequence[Tuple[float, Any]], default: Any) -> Any:
    for bound, label in bands:
        if value >= bound:
            return label
    return default


def _first_below(value: float, bands: Sequence[Tuple[float, Any]], default: Any) -> Any:
    """Label of the first band whose bound the value stays under."""
    for bound, label in bands:
        if value < bound:
            return label
    return default


def _bucket(value: float, width: float) -> int:
    # Round half up
    return math.floor(value / width + 0.5)


@dataclass(frozen=True)
class MarketAnalysis:
    """Output of the market insight analyzer."""
    price_trend: PriceTrend
    market_trend: MarketTrend
    investment_value: InvestmentValue
    investment_score: int
    price_per_sqm: float
    insights: Tuple[str, ...]
    market_features: Optional[MarketFeatures] = None
    data_diversity: DataDiversity = field(default_factory=DataDiversity)
    recommendations: Tuple[str, ...] = ()


class MarketInsightAnalyzer:
    """Produces market labels and insights for a set of corrected comparables."""

    def analyze(
        self,
        comparables: Sequence[CorrectedComparable],
        target: ValuationRequest,
        data_origin: DataOrigin = DataOrigin.LIVE,
    ) -> MarketAnalysis:
        """
        Analyze comparables for the target property.

        Args:
            comparables: Corrected comparables used for the valuation
            target: The property being valued
            data_origin: Whether the comparables are live or synthetic

        Returns:
            MarketAnalysis with labels, features and ordered insight bullets
        """
        price_per_sqm = self.price_per_sqm(comparables, target)
        score = self.investment_score(price_per_sqm, target.age_years, len(comparables))
        diversity = self.data_diversity(comparables)

        return MarketAnalysis(
            price_trend=self.price_trend(comparables),
            market_trend=self.market_trend(price_per_sqm),
            investment_value=self.investment_value(score),
            investment_score=score,
            price_per_sqm=price_per_sqm,
            insights=tuple(
                self.insights(comparables, target, price_per_sqm, data_origin, diversity)
            ),
            market_features=self.market_features(comparables),
            data_diversity=diversity,
            recommendations=tuple(self.recommendations(len(comparables), diversity)),
        )

    @staticmethod
    def price_per_sqm(
        comparables: Sequence[CorrectedComparable],
        target: ValuationRequest,
    ) -> float:
        """Average corrected price divided by the target's floor area."""
        if not comparables or target.area_sqm <= 0:
            return 0.0
        average = sum(c.corrected_price for c in comparables) / len(comparables)
        return average / target.area_sqm

    @staticmethod
    def price_trend(comparables: Sequence[CorrectedComparable]) -> PriceTrend:
        """
        Compare the most recent 30% of comparables against the oldest 30%.

        Recency is the transaction date when every comparable has one;
        otherwise proximity is used as a proxy (closest first).
        """
        n = len(comparables)
        if n < MIN_COMPS_FOR_TREND:
            return PriceTrend.INSUFFICIENT_DATA

        if all(c.transaction_date is not None for c in comparables):
            ordered = sorted(comparables, key=lambda c: c.transaction_date, reverse=True)
        else:
            ordered = sorted(comparables, key=lambda c: c.pseudo_distance_km)

        k = int(n * TREND_SLICE_FRACTION)
        recent = ordered[:k]
        older = ordered[-k:]

        recent_avg = sum(c.corrected_price for c in recent) / k
        older_avg = sum(c.corrected_price for c in older) / k
        if older_avg <= 0:
            return PriceTrend.STABLE

        change = (recent_avg - older_avg) / older_avg * 100
        if change > TREND_THRESHOLD_PERCENT:
            return PriceTrend.RISING
        if change < -TREND_THRESHOLD_PERCENT:
            return PriceTrend.DECLINING
        return PriceTrend.STABLE

    @staticmethod
    def market_trend(price_per_sqm: float) -> MarketTrend:
        return _first_above(price_per_sqm, MARKET_TREND_BANDS, MarketTrend.COOL)

    @staticmethod
    def investment_score(price_per_sqm: float, age_years: int, sample_count: int) -> int:
        """Sum of the rubric points whose criterion holds."""
        return sum(
            points
            for points, criterion in INVESTMENT_RUBRIC
            if criterion(price_per_sqm, age_years, sample_count)
        )

    @staticmethod
    def investment_value(score: int) -> InvestmentValue:
        return _first_at_least(score, INVESTMENT_VALUE_BANDS, InvestmentValue.LOW)

    # -------------------------------------------------------------------------
    # Market features
    # -------------------------------------------------------------------------

    @staticmethod
    def volume_trend(comparables: Sequence[CorrectedComparable]) -> FeatureLevel:
        """Average number of dated transactions per month that has any."""
        if len(comparables) < MIN_COMPS_FOR_VOLUME:
            return FeatureLevel.MEDIUM

        months = {}
        for comp in comparables:
            if comp.transaction_date is not None:
                key = (comp.transaction_date.year, comp.transaction_date.month)
                months[key] = months.get(key, 0) + 1
        if not months:
            return FeatureLevel.MEDIUM

        per_month = sum(months.values()) / len(months)
        level = _first_above(per_month, VOLUME_HIGH_BANDS, None)
        if level is None:
            level = _first_below(per_month, VOLUME_LOW_BANDS, FeatureLevel.MEDIUM)
        return level

    @staticmethod
    def location_premium(comparables: Sequence[CorrectedComparable]) -> FeatureLevel:
        mean_distance = sum(c.pseudo_distance_km for c in comparables) / len(comparables)
        return _first_below(mean_distance, LOCATION_PREMIUM_BANDS, FeatureLevel.LOW)

    @staticmethod
    def age_depreciation(comparables: Sequence[CorrectedComparable]) -> FeatureLevel:
        mean_age = sum(c.age_years for c in comparables) / len(comparables)
        return _first_below(mean_age, AGE_DEPRECIATION_BANDS, FeatureLevel.HIGH)

    @staticmethod
    def area_efficiency(comparables: Sequence[CorrectedComparable]) -> FeatureLevel:
        per_sqm = [c.corrected_price / c.area_sqm for c in comparables if c.area_sqm > 0]
        if not per_sqm:
            return FeatureLevel.LOW
        return _first_above(sum(per_sqm) / len(per_sqm), AREA_EFFICIENCY_BANDS, FeatureLevel.LOW)

    def market_features(self, comparables: Sequence[CorrectedComparable]) -> Optional[MarketFeatures]:
        """Feature labels for the comparable set; None when it is empty."""
        if not comparables:
            return None
        return MarketFeatures(
            volume_trend=self.volume_trend(comparables),
            location_premium=self.location_premium(comparables),
            age_depreciation=self.age_depreciation(comparables),
            area_efficiency=self.area_efficiency(comparables),
        )

    # -------------------------------------------------------------------------
    # Diversity and recommendations
    # -------------------------------------------------------------------------

    @staticmethod
    def data_diversity(comparables: Sequence[CorrectedComparable]) -> DataDiversity:
        """Count distinct 10 sqm area, 5 year age and 0.5 km distance buckets."""
        return DataDiversity(
            area_bands=len({_bucket(c.area_sqm, AREA_BUCKET_SQM) for c in comparables}),
            age_bands=len({_bucket(c.age_years, AGE_BUCKET_YEARS) for c in comparables}),
            distance_bands=len(
                {_bucket(c.pseudo_distance_km, DISTANCE_BUCKET_KM) for c in comparables}
            ),
        )

    @staticmethod
    def recommendations(sample_count: int, diversity: DataDiversity) -> List[str]:
        """Data-collection recommendations for a thin or narrow sample."""
        measures = {
            "sample_count": sample_count,
            "area_bands": diversity.area_bands,
            "age_bands": diversity.age_bands,
        }
        return [text for name, minimum, text in RECOMMENDATION_RULES if measures[name] < minimum]

    @staticmethod
    def insights(
        comparables: Sequence[CorrectedComparable],
        target: ValuationRequest,
        price_per_sqm: float,
        data_origin: DataOrigin,
        diversity: DataDiversity = None,
    ) -> List[str]:
        """Build the ordered insight bullets."""
        count = len(comparables)
        bullets = []

        if count >= ADEQUATE_SAMPLE_SIZE:
            bullets.append(f"Based on {count} comparable transactions in the surrounding area.")
        else:
            bullets.append(
                f"Based on {count} comparable transactions; "
                "more data would improve accuracy."
            )

        if price_per_sqm > HIGH_PRICE_PER_SQM:
            bullets.append(
                f"High-price area ({format_price_per_sqm(price_per_sqm)}); "
                "investment value may be strong."
            )
        elif 0 < price_per_sqm < LOW_PRICE_PER_SQM:
            bullets.append(
                f"Low-price area ({format_price_per_sqm(price_per_sqm)}); "
                "this may be a good time to buy."
            )

        if target.age_years <= NEW_BUILDING_MAX_AGE:
            bullets.append("Relatively new building; maintenance costs should be low.")
        elif target.age_years >= OLD_BUILDING_MIN_AGE:
            bullets.append("Older building; consider budgeting for renovation and maintenance.")

        if count and diversity is not None:
            bullets.append(
                f"Sample diversity: {diversity.area_bands} floor-area bands, "
                f"{diversity.age_bands} age bands, {diversity.distance_bands} distance bands."
            )

        if data_origin == DataOrigin.SYNTHETIC:
            bullets.append(
                "No live transaction data was available; "
                "this estimate uses synthetic comparables."
            )

        return bullets
