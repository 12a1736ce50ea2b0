"""
Data models for the Comparable-Sales Valuation Engine

Defines the shared enums, the comparable-transaction records flowing through
the pipeline, and the immutable valuation result returned to callers.
"""

import hashlib
import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional, Tuple

from .errors import InvalidValuationRequestError


class Purpose(Enum):
    """
    Intended transaction purpose for the target property.

    Shared by the request, the comparables and the synthetic generator.
    """
    SALE = "sale"
    PURCHASE = "purchase"
    RENTAL = "rental"

    @classmethod
    def from_string(cls, value: Any) -> Optional["Purpose"]:
        """Convert English token or Japanese label to Purpose."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalised = value.lower().strip()
        return _PURPOSE_ALIASES.get(normalised)


_PURPOSE_ALIASES = {
    "sale": Purpose.SALE,
    "sell": Purpose.SALE,
    "売却": Purpose.SALE,
    "purchase": Purpose.PURCHASE,
    "buy": Purpose.PURCHASE,
    "購入": Purpose.PURCHASE,
    "rental": Purpose.RENTAL,
    "rent": Purpose.RENTAL,
    "賃貸": Purpose.RENTAL,
}


class PropertyUse(Enum):
    """
    Use category of the building.

    Drives the base price per sqm of synthetic comparables:
    residential > commercial > office > warehouse.
    """
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    OFFICE = "office"
    WAREHOUSE = "warehouse"

    @classmethod
    def from_string(cls, value: Any) -> Optional["PropertyUse"]:
        """Convert English token or Japanese label to PropertyUse."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalised = value.lower().strip()
        return _USE_ALIASES.get(normalised)


_USE_ALIASES = {
    "residential": PropertyUse.RESIDENTIAL,
    "住宅": PropertyUse.RESIDENTIAL,
    "commercial": PropertyUse.COMMERCIAL,
    "retail": PropertyUse.COMMERCIAL,
    "店舗": PropertyUse.COMMERCIAL,
    "office": PropertyUse.OFFICE,
    "事務所": PropertyUse.OFFICE,
    "warehouse": PropertyUse.WAREHOUSE,
    "倉庫": PropertyUse.WAREHOUSE,
}


class ConfidenceLabel(Enum):
    """
    Confidence label for a valuation.

    Derived from sample size only:
    < 10 comps: low, < 30: medium, < 100: high, otherwise veryHigh.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "veryHigh"


class MarketTrend(Enum):
    """Local market temperature from the price-per-sqm band."""
    HOT = "hot"
    WARM = "warm"
    STABLE = "stable"
    COOL = "cool"


class PriceTrend(Enum):
    """Direction of corrected prices between recent and older comps."""
    RISING = "rising"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficientData"


class InvestmentValue(Enum):
    """Investment value band from the scoring rubric."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FeatureLevel(Enum):
    """Three-step level used by the market feature labels."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DataOrigin(Enum):
    """Provenance of the comparables behind a valuation."""
    LIVE = "live"
    SYNTHETIC = "synthetic"


class DataQuality(Enum):
    """
    Data-quality indicator surfaced with every result.

    adequate:  live data met the region's minimum sample size
    limited:   live data used, but below the minimum sample size
    synthetic: synthetic fallback data used
    default:   no statistics possible, fixed default range returned
    """
    ADEQUATE = "adequate"
    LIMITED = "limited"
    SYNTHETIC = "synthetic"
    DEFAULT = "default"


class ValuationStage(Enum):
    """States of the valuation pipeline, in order."""
    RESOLVING_REGION = "resolvingRegion"
    FETCHING_COMPARABLES = "fetchingComparables"
    BROADENING_SCOPE = "broadeningScope"
    CORRECTING = "correcting"
    AGGREGATING = "aggregating"
    ANALYZING = "analyzing"
    DONE = "done"


@dataclass(frozen=True)
class RegionProfile:
    """Search profile for an administrative region."""
    search_radius_km: float
    lookback_months: int
    minimum_sample_size: int

    def to_dict(self) -> dict:
        return {
            "search_radius_km": self.search_radius_km,
            "lookback_months": self.lookback_months,
            "minimum_sample_size": self.minimum_sample_size,
        }


@dataclass(frozen=True)
class RawComparable:
    """
    A single observed transaction, as returned by a ComparableSource.

    Prices are integer yen. Never mutated once created.
    """
    address: str
    price: int
    area_sqm: float
    age_years: int
    purpose: Purpose = Purpose.SALE
    transaction_date: Optional[date] = None

    # Provenance
    region_code: str = ""
    source_id: str = ""

    # Distance reported by the provider, preferred over the pseudo-distance
    reported_distance_km: Optional[float] = None

    @property
    def price_per_sqm(self) -> float:
        if self.area_sqm <= 0:
            return 0.0
        return self.price / self.area_sqm

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "price": self.price,
            "area_sqm": self.area_sqm,
            "age_years": self.age_years,
            "purpose": self.purpose.value,
            "transaction_date": (
                self.transaction_date.isoformat() if self.transaction_date else None
            ),
            "region_code": self.region_code,
            "source_id": self.source_id,
        }


@dataclass(frozen=True)
class CorrectedComparable:
    """
    A RawComparable with its correction factors applied.

    corrected_price = price x total_factor, rounded to whole yen.
    """
    comparable: RawComparable
    pseudo_distance_km: float
    distance_factor: float
    area_factor: float
    age_factor: float
    total_factor: float
    corrected_price: int

    @property
    def address(self) -> str:
        return self.comparable.address

    @property
    def price(self) -> int:
        return self.comparable.price

    @property
    def area_sqm(self) -> float:
        return self.comparable.area_sqm

    @property
    def age_years(self) -> int:
        return self.comparable.age_years

    @property
    def transaction_date(self) -> Optional[date]:
        return self.comparable.transaction_date

    def to_dict(self) -> dict:
        data = self.comparable.to_dict()
        data.update({
            "pseudo_distance_km": round(self.pseudo_distance_km, 3),
            "distance_factor": round(self.distance_factor, 4),
            "area_factor": self.area_factor,
            "age_factor": self.age_factor,
            "total_factor": round(self.total_factor, 4),
            "corrected_price": self.corrected_price,
        })
        return data


@dataclass(frozen=True)
class ConfidenceInterval:
    """Normal-approximation 95% interval around the filtered mean."""
    lower: float
    upper: float
    margin_of_error: float

    def to_dict(self) -> dict:
        return {
            "lower": int(round(self.lower)),
            "upper": int(round(self.upper)),
            "margin_of_error": int(round(self.margin_of_error)),
        }


@dataclass(frozen=True)
class AggregateStatistics:
    """Statistics over corrected prices. Derived, never persisted."""
    mean_price: int
    median_price: int
    filtered_mean_price: int
    std_dev: float
    coefficient_of_variation: float
    confidence_interval: ConfidenceInterval
    sample_count: int
    filtered_sample_count: int

    # Smallest retained corrected price, used to bound the price range
    filtered_min_price: int = 0

    @property
    def outliers_removed(self) -> int:
        return self.sample_count - self.filtered_sample_count

    def to_dict(self) -> dict:
        return {
            "mean_price": self.mean_price,
            "median_price": self.median_price,
            "filtered_mean_price": self.filtered_mean_price,
            "std_dev": int(round(self.std_dev)),
            "coefficient_of_variation": round(self.coefficient_of_variation, 2),
            "confidence_interval": self.confidence_interval.to_dict(),
            "sample_count": self.sample_count,
            "filtered_sample_count": self.filtered_sample_count,
        }


# Request bounds; larger values cannot describe a real property
MAX_AREA_SQM = 1_000_000.0
MAX_AGE_YEARS = 200
MAX_LOOKBACK_MONTHS = 600


@dataclass(frozen=True)
class ValuationRequest:
    """
    Inbound valuation request.

    Validated on construction; invalid input raises
    InvalidValuationRequestError before any engine work happens.
    """
    address: str
    area_sqm: float
    age_years: int
    purpose: Purpose
    property_use: PropertyUse = PropertyUse.RESIDENTIAL
    search_radius_km_override: Optional[float] = None
    lookback_months_override: Optional[int] = None

    def __post_init__(self):
        errors = []

        if not isinstance(self.address, str) or not self.address.strip():
            errors.append("address is required and cannot be empty")

        if isinstance(self.area_sqm, bool) or not isinstance(self.area_sqm, (int, float)):
            errors.append("area_sqm must be a number")
        elif _is_nonfinite(self.area_sqm) or not self.area_sqm > 0:
            errors.append("area_sqm must be a finite number greater than 0")
        elif self.area_sqm > MAX_AREA_SQM:
            errors.append(f"area_sqm cannot exceed {MAX_AREA_SQM:,.0f}")

        if isinstance(self.age_years, bool) or not isinstance(self.age_years, int):
            errors.append("age_years must be an integer")
        elif self.age_years < 0:
            errors.append("age_years cannot be negative")
        elif self.age_years > MAX_AGE_YEARS:
            errors.append(f"age_years cannot exceed {MAX_AGE_YEARS}")

        if not isinstance(self.purpose, Purpose):
            errors.append("purpose must be one of: sale, purchase, rental")

        if not isinstance(self.property_use, PropertyUse):
            errors.append(
                "property_use must be one of: residential, commercial, office, warehouse"
            )

        if self.search_radius_km_override is not None and not (
            isinstance(self.search_radius_km_override, (int, float))
            and not _is_nonfinite(self.search_radius_km_override)
            and self.search_radius_km_override > 0
        ):
            errors.append("search_radius_km_override must be a finite number greater than 0")

        if self.lookback_months_override is not None and not (
            isinstance(self.lookback_months_override, int)
            and 0 < self.lookback_months_override <= MAX_LOOKBACK_MONTHS
        ):
            errors.append(
                f"lookback_months_override must be a positive integer up to {MAX_LOOKBACK_MONTHS}"
            )

        if errors:
            raise InvalidValuationRequestError(errors)

    @classmethod
    def from_dict(cls, data: dict) -> "ValuationRequest":
        """
        Build a request from loosely-typed input (form fields, JSON, CLI).

        Numeric strings are converted and purpose/use accept Japanese labels.
        Every problem found is reported at once.
        """
        errors = []

        area = _parse_number(data.get("area_sqm"), float)
        if area is None:
            errors.append("area_sqm must be a number")

        age = _parse_number(data.get("age_years"), int)
        if age is None:
            errors.append("age_years must be an integer")

        purpose = Purpose.from_string(data.get("purpose"))
        if purpose is None:
            errors.append("purpose must be one of: sale, purchase, rental")

        raw_use = data.get("property_use")
        use = PropertyUse.RESIDENTIAL if raw_use in (None, "") else PropertyUse.from_string(raw_use)
        if use is None:
            errors.append(
                "property_use must be one of: residential, commercial, office, warehouse"
            )

        radius = None
        if data.get("search_radius_km_override") not in (None, ""):
            radius = _parse_number(data["search_radius_km_override"], float)
            if radius is None:
                errors.append("search_radius_km_override must be a number")

        lookback = None
        if data.get("lookback_months_override") not in (None, ""):
            lookback = _parse_number(data["lookback_months_override"], int)
            if lookback is None:
                errors.append("lookback_months_override must be an integer")

        if errors:
            raise InvalidValuationRequestError(errors)

        return cls(
            address=data.get("address") or "",
            area_sqm=area,
            age_years=age,
            purpose=purpose,
            property_use=use,
            search_radius_km_override=radius,
            lookback_months_override=lookback,
        )

    def fingerprint(self) -> str:
        """Stable digest of the request, used to derive per-request seeds."""
        content = "|".join([
            self.address.strip(),
            repr(float(self.area_sqm)),
            str(self.age_years),
            self.purpose.value,
            self.property_use.value,
            repr(self.search_radius_km_override),
            repr(self.lookback_months_override),
        ])
        return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


def _is_nonfinite(value: Any) -> bool:
    return isinstance(value, float) and not math.isfinite(value)


def _parse_number(value: Any, kind: type) -> Optional[Any]:
    """Parse a finite int/float from a number or numeric string; None on failure."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        if kind is int:
            return value
        try:
            return float(value)
        except OverflowError:
            return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if kind is int:
            return int(value) if value.is_integer() else None
        return value
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        if kind is int:
            return int(number) if number.is_integer() else None
        return number
    return None


@dataclass(frozen=True)
class MarketFeatures:
    """
    Qualitative features of the comparable set.

    volume_trend:     transactions per active month
    location_premium: how close the comparables sit to the target
    age_depreciation: how old the comparable buildings are
    area_efficiency:  corrected price per square metre of the comparables
    """
    volume_trend: FeatureLevel
    location_premium: FeatureLevel
    age_depreciation: FeatureLevel
    area_efficiency: FeatureLevel

    def to_dict(self) -> dict:
        return {
            "volume_trend": self.volume_trend.value,
            "location_premium": self.location_premium.value,
            "age_depreciation": self.age_depreciation.value,
            "area_efficiency": self.area_efficiency.value,
        }


@dataclass(frozen=True)
class DataDiversity:
    """Number of distinct floor-area, age and distance bands in the sample."""
    area_bands: int = 0
    age_bands: int = 0
    distance_bands: int = 0

    def to_dict(self) -> dict:
        return {
            "area_bands": self.area_bands,
            "age_bands": self.age_bands,
            "distance_bands": self.distance_bands,
        }


@dataclass(frozen=True)
class ValuationResult:
    """
    Complete valuation result for a target property.

    Money values are integer yen; enum fields serialise to fixed tokens
    so downstream renderers can localise them.
    """
    # Core valuation
    price_range_low: int
    price_range_high: int
    estimated_price: int
    confidence_label: ConfidenceLabel
    sample_count: int

    # Market analysis
    market_trend: MarketTrend
    price_trend: PriceTrend
    investment_value: InvestmentValue
    insights: Tuple[str, ...] = ()
    market_features: Optional[MarketFeatures] = None
    data_diversity: DataDiversity = field(default_factory=DataDiversity)
    recommendations: Tuple[str, ...] = ()

    # Top comparables (ascending corrected price)
    comparables: Tuple[CorrectedComparable, ...] = ()

    # Provenance
    data_origin: DataOrigin = DataOrigin.LIVE
    data_quality: DataQuality = DataQuality.ADEQUATE
    region_code: str = ""
    region_profile: Optional[RegionProfile] = None
    statistics: Optional[AggregateStatistics] = None

    # Pipeline diagnostics
    regions_queried: Tuple[str, ...] = ()
    failed_fetches: int = 0
    deadline_exceeded: bool = False
    radius_relaxed: bool = False
    stages: Tuple[ValuationStage, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "price_range_low": self.price_range_low,
            "price_range_high": self.price_range_high,
            "estimated_price": self.estimated_price,
            "confidence_label": self.confidence_label.value,
            "sample_count": self.sample_count,
            "market_trend": self.market_trend.value,
            "price_trend": self.price_trend.value,
            "investment_value": self.investment_value.value,
            "insights": list(self.insights),
            "market_features": self.market_features.to_dict() if self.market_features else None,
            "data_diversity": self.data_diversity.to_dict(),
            "recommendations": list(self.recommendations),
            "comparables": [c.to_dict() for c in self.comparables],
            "data_origin": self.data_origin.value,
            "data_quality": self.data_quality.value,
            "region_code": self.region_code,
            "region_profile": self.region_profile.to_dict() if self.region_profile else None,
            "statistics": self.statistics.to_dict() if self.statistics else None,
            "regions_queried": list(self.regions_queried),
            "failed_fetches": self.failed_fetches,
            "deadline_exceeded": self.deadline_exceeded,
            "radius_relaxed": self.radius_relaxed,
            "stages": [s.value for s in self.stages],
        }
