"""
Comparable-Sales Valuation Engine

Values a property from comparable transactions: region resolution,
address-based proximity, price corrections, robust statistics and
market insights.

The orchestrator lives in core.comp_engine.valuation (it depends on the
sources package, which in turn depends on these models).
"""

from .models import (
    Purpose,
    PropertyUse,
    ConfidenceLabel,
    MarketTrend,
    PriceTrend,
    InvestmentValue,
    FeatureLevel,
    DataOrigin,
    DataQuality,
    ValuationStage,
    RegionProfile,
    RawComparable,
    CorrectedComparable,
    ConfidenceInterval,
    AggregateStatistics,
    MarketFeatures,
    DataDiversity,
    ValuationRequest,
    ValuationResult,
)
from .errors import (
    ValuationError,
    DataSourceUnavailableError,
    InsufficientDataError,
    InvalidValuationRequestError,
)
from .regions import DEFAULT_REGION_CODE, RegionResolver, RegionCache, LRURegionCache
from .filters import ComparableValidityFilter, filter_by_radius
from .similarity import SimilarityEstimator, parse_address
from .correction import CorrectionModel
from .statistics import StatisticalAggregator
from .insights import MarketInsightAnalyzer, MarketAnalysis

__all__ = [
    # Models
    "Purpose",
    "PropertyUse",
    "ConfidenceLabel",
    "MarketTrend",
    "PriceTrend",
    "InvestmentValue",
    "FeatureLevel",
    "DataOrigin",
    "DataQuality",
    "ValuationStage",
    "RegionProfile",
    "RawComparable",
    "CorrectedComparable",
    "ConfidenceInterval",
    "AggregateStatistics",
    "MarketFeatures",
    "DataDiversity",
    "ValuationRequest",
    "ValuationResult",
    # Errors
    "ValuationError",
    "DataSourceUnavailableError",
    "InsufficientDataError",
    "InvalidValuationRequestError",
    # Components
    "DEFAULT_REGION_CODE",
    "RegionResolver",
    "RegionCache",
    "LRURegionCache",
    "ComparableValidityFilter",
    "filter_by_radius",
    "SimilarityEstimator",
    "parse_address",
    "CorrectionModel",
    "StatisticalAggregator",
    "MarketInsightAnalyzer",
    "MarketAnalysis",
]

__version__ = "1.0"
