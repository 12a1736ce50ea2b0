"""
Tests for the valuation orchestrator

End-to-end behaviour of a single valuation:
- Live data path, with broadening into neighbouring regions
- Synthetic fallback (no source, unavailable source, failing source)
- Request deadline
- Default price range when nothing can be aggregated
- Radius filter and its relaxation
- Deterministic results for a seeded orchestrator
"""

import threading
from datetime import date
from pathlib import Path
import sys

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.comp_engine.errors import DataSourceUnavailableError, InvalidValuationRequestError
from core.comp_engine.models import (
    ConfidenceLabel,
    DataOrigin,
    DataQuality,
    FeatureLevel,
    Purpose,
    RawComparable,
    ValuationRequest,
    ValuationStage,
)
from core.comp_engine.valuation import (
    DEFAULT_PRICE_RANGE,
    ValuationOrchestrator,
    evaluate,
)
from sources.base import ComparableSource
from sources.reinfolib import ReinfolibRecordParser
from utils.config import Config


TOKYO_ADDRESS = "東京都新宿区西新宿1-1-1"
OKINAWA_ADDRESS = "沖縄県那覇市おもろまち1-1-1"


# =============================================================================
# Test Sources
# =============================================================================

class FakeSource(ComparableSource):
    """Serves canned records keyed by (region, year) and records every call."""

    source_id = "fake"

    def __init__(self, records=None, reference_date=None):
        super().__init__(reference_date=reference_date)
        self._records = records or {}
        self.calls = []
        self._lock = threading.Lock()

    def fetch_period(self, region_code, year):
        with self._lock:
            self.calls.append((region_code, year))
        return list(self._records.get((region_code, year), []))


class FailingSource(FakeSource):

    def __init__(self, error):
        super().__init__()
        self._error = error

    def fetch_period(self, region_code, year):
        super().fetch_period(region_code, year)
        raise self._error


class UnavailableSource(FakeSource):

    @property
    def is_available(self):
        return False


class BlockingSource(FakeSource):
    """Blocks every call until released."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def fetch_period(self, region_code, year):
        self.release.wait(timeout=5)
        return []


class EmptySyntheticSource(ComparableSource):
    """Synthetic factory replacement that never produces records."""

    def __init__(self, **kwargs):
        super().__init__(reference_date=kwargs.get("reference_date"))

    def fetch_period(self, region_code, year):
        return []


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def reference_date():
    """Fixed reference date for deterministic tests."""
    return date(2024, 6, 1)


@pytest.fixture
def target():
    return ValuationRequest(TOKYO_ADDRESS, 70.0, 10, Purpose.SALE)


@pytest.fixture
def create_comp():
    """Factory fixture for raw comparables shaped like the target."""
    def _create(price, distance_km=0.5, area_sqm=70.0, age_years=10, region_code="13", **kwargs):
        return RawComparable(
            address=kwargs.pop("address", "東京都新宿区西新宿2-1"),
            price=price,
            area_sqm=area_sqm,
            age_years=age_years,
            transaction_date=kwargs.pop("transaction_date", date(2024, 3, 1)),
            region_code=region_code,
            source_id="fake",
            reported_distance_km=distance_km,
            **kwargs,
        )
    return _create


@pytest.fixture
def create_orchestrator(reference_date):
    """Factory fixture for a seeded orchestrator."""
    def _create(live_source=None, **kwargs):
        kwargs.setdefault("seed", "test-seed")
        kwargs.setdefault("reference_date", reference_date)
        return ValuationOrchestrator(live_source=live_source, **kwargs)
    return _create


@pytest.fixture
def tokyo_records(create_comp):
    """Twelve 2024 Tokyo records, pricier ones closer to the target."""
    return {
        ("13", 2024): [
            create_comp(28_000_000 + i * 500_000, distance_km=round(1.5 - i * 0.125, 3))
            for i in range(12)
        ],
    }


# =============================================================================
# Test: Live Path
# =============================================================================

class TestLiveValuation:

    def test_live_result(self, create_orchestrator, target, tokyo_records, reference_date):
        source = FakeSource(tokyo_records, reference_date)
        result = create_orchestrator(source).evaluate(target)

        assert result.data_origin == DataOrigin.LIVE
        assert result.data_quality == DataQuality.LIMITED
        assert result.sample_count == 12
        assert result.confidence_label == ConfidenceLabel.MEDIUM
        assert result.price_range_low < result.price_range_high
        assert result.estimated_price == (result.price_range_low + result.price_range_high) // 2
        assert result.region_code == "13"
        assert result.failed_fetches == 0
        assert not result.deadline_exceeded
        assert not result.radius_relaxed
        assert "12" in result.insights[0]

    def test_primary_region_queried_for_every_year(self, create_orchestrator, target, tokyo_records, reference_date):
        source = FakeSource(tokyo_records, reference_date)
        create_orchestrator(source).evaluate(target)

        primary_years = sorted(year for code, year in source.calls if code == "13")
        assert primary_years == list(range(2014, 2025))

    def test_short_sample_broadens_to_neighbours(self, create_orchestrator, target, tokyo_records, reference_date):
        source = FakeSource(tokyo_records, reference_date)
        result = create_orchestrator(source).evaluate(target)

        assert result.regions_queried == ("13", "11", "12", "14")
        assert ValuationStage.BROADENING_SCOPE in result.stages

        neighbour_calls = sorted(call for call in source.calls if call[0] != "13")
        assert neighbour_calls == [("11", 2024), ("12", 2024), ("14", 2024)]

    def test_neighbour_records_merged(self, create_orchestrator, create_comp, target, tokyo_records, reference_date):
        records = dict(tokyo_records)
        records[("14", 2024)] = [create_comp(31_000_000, region_code="14") for _ in range(3)]

        result = create_orchestrator(FakeSource(records, reference_date)).evaluate(target)

        assert result.sample_count == 15

    def test_adequate_sample_not_broadened(self, create_orchestrator, create_comp, reference_date):
        records = {
            ("47", 2024): [
                create_comp(20_000_000 + i * 10_000, address="沖縄県那覇市おもろまち2-1", region_code="47")
                for i in range(250)
            ],
        }
        source = FakeSource(records, reference_date)
        target = ValuationRequest(OKINAWA_ADDRESS, 70.0, 10, Purpose.SALE)

        result = create_orchestrator(source).evaluate(target)

        assert result.data_quality == DataQuality.ADEQUATE
        assert result.confidence_label == ConfidenceLabel.VERY_HIGH
        assert result.regions_queried == ("47",)
        assert ValuationStage.BROADENING_SCOPE not in result.stages

    def test_invalid_records_dropped(self, create_orchestrator, create_comp, target, tokyo_records, reference_date):
        records = dict(tokyo_records)
        records[("13", 2023)] = [
            create_comp(500_000),  # below minimum price
            create_comp(30_000_000, area_sqm=10.0),  # below minimum area
            create_comp(30_000_000, age_years=-1),  # unparseable age
            create_comp(30_000_000, area_sqm=float("nan")),
            create_comp(30_000_000, area_sqm=float("inf")),
        ]

        result = create_orchestrator(FakeSource(records, reference_date)).evaluate(target)

        assert result.sample_count == 12
        assert result.failed_fetches == 0

    def test_provider_records_without_age_kept(self, create_orchestrator, target, reference_date):
        parser = ReinfolibRecordParser(reference_date=reference_date)
        land_only = {
            "Prefecture": "東京都",
            "Municipality": "新宿区",
            "DistrictName": "西新宿",
            "TradePrice": "30000000",
            "Area": "70",
            "Period": "2024年第1四半期",
        }
        records = {("13", 2024): parser.parse([land_only] * 10, region_code="13")}

        result = create_orchestrator(FakeSource(records, reference_date)).evaluate(target)

        assert result.data_origin == DataOrigin.LIVE
        assert result.sample_count == 10
        assert all(c.age_years == 0 for c in result.comparables)

    def test_malformed_provider_record_does_not_fail_period(self, create_orchestrator, create_comp, target, reference_date):
        parser = ReinfolibRecordParser(reference_date=reference_date)
        malformed = [
            {"address": "東京都新宿区西新宿2-1", "price": float("inf"), "area": 70, "age": 10},
            {"address": "東京都新宿区西新宿2-1", "price": 30_000_000, "area": float("nan"), "age": 10},
        ]
        records = {
            ("13", 2024): parser.parse(malformed, region_code="13")
            + [create_comp(30_000_000 + i * 100_000) for i in range(10)],
        }

        result = create_orchestrator(FakeSource(records, reference_date)).evaluate(target)

        assert result.sample_count == 10
        assert result.failed_fetches == 0

    def test_stages_in_order(self, create_orchestrator, target, tokyo_records, reference_date):
        result = create_orchestrator(FakeSource(tokyo_records, reference_date)).evaluate(target)

        assert result.stages == (
            ValuationStage.RESOLVING_REGION,
            ValuationStage.FETCHING_COMPARABLES,
            ValuationStage.BROADENING_SCOPE,
            ValuationStage.CORRECTING,
            ValuationStage.AGGREGATING,
            ValuationStage.ANALYZING,
            ValuationStage.DONE,
        )


# =============================================================================
# Test: Synthetic Fallback
# =============================================================================

class TestSyntheticFallback:

    def test_no_live_data(self, create_orchestrator, target, reference_date):
        result = create_orchestrator(FakeSource(reference_date=reference_date)).evaluate(target)

        assert result.data_origin == DataOrigin.SYNTHETIC
        assert result.data_quality == DataQuality.SYNTHETIC
        assert result.sample_count == 800
        assert result.confidence_label == ConfidenceLabel.VERY_HIGH
        assert "synthetic" in result.insights[-1]

    def test_failing_source_never_raises(self, create_orchestrator, target):
        source = FailingSource(DataSourceUnavailableError("HTTP 503"))

        result = create_orchestrator(source).evaluate(target)

        assert result.data_origin == DataOrigin.SYNTHETIC
        assert result.failed_fetches == 14  # 11 years + 3 neighbours
        assert result.sample_count == 800

    def test_unexpected_source_error_counted(self, create_orchestrator, target):
        source = FailingSource(RuntimeError("parser bug"))

        result = create_orchestrator(source).evaluate(target)

        assert result.data_origin == DataOrigin.SYNTHETIC
        assert result.failed_fetches == 14

    def test_no_live_source(self, create_orchestrator, target):
        result = create_orchestrator(None).evaluate(target)

        assert result.data_origin == DataOrigin.SYNTHETIC
        assert result.regions_queried == ()

    def test_unavailable_source_not_called(self, create_orchestrator, target):
        source = UnavailableSource()

        result = create_orchestrator(source).evaluate(target)

        assert source.calls == []
        assert result.data_origin == DataOrigin.SYNTHETIC

    def test_unresolved_address(self, create_orchestrator, reference_date):
        source = FakeSource(reference_date=reference_date)
        target = ValuationRequest("Unknown Street 1", 70.0, 10, Purpose.SALE)

        result = create_orchestrator(source).evaluate(target)

        assert result.region_code == "00"
        assert source.calls == []
        assert result.sample_count == 250
        assert result.region_profile.minimum_sample_size == 250


# =============================================================================
# Test: Deadline
# =============================================================================

class TestDeadline:

    def test_deadline_falls_back(self, create_orchestrator, target):
        source = BlockingSource()
        try:
            result = create_orchestrator(source, request_deadline=0.2).evaluate(target)
        finally:
            source.release.set()

        assert result.deadline_exceeded
        assert result.failed_fetches == 11
        assert result.regions_queried == ("13",)
        assert result.data_origin == DataOrigin.SYNTHETIC


# =============================================================================
# Test: Default Range
# =============================================================================

class TestDefaultRange:

    def test_nothing_to_aggregate(self, create_orchestrator, target):
        orchestrator = create_orchestrator(None, synthetic_factory=EmptySyntheticSource)

        result = orchestrator.evaluate(target)

        assert (result.price_range_low, result.price_range_high) == DEFAULT_PRICE_RANGE
        assert result.estimated_price == 35_000_000
        assert result.confidence_label == ConfidenceLabel.LOW
        assert result.data_quality == DataQuality.DEFAULT
        assert result.statistics is None
        assert result.sample_count == 0
        assert result.comparables == ()


# =============================================================================
# Test: Radius
# =============================================================================

class TestRadius:

    def test_radius_relaxed_when_nothing_within(self, create_orchestrator, create_comp, target, reference_date):
        records = {("13", 2024): [create_comp(30_000_000 + i * 100_000, distance_km=50.0) for i in range(10)]}

        result = create_orchestrator(FakeSource(records, reference_date)).evaluate(target)

        assert result.radius_relaxed
        assert result.sample_count == 10

    def test_radius_override(self, create_orchestrator, create_comp, reference_date):
        records = {
            ("13", 2024): [create_comp(30_000_000, distance_km=0.5) for _ in range(6)]
            + [create_comp(30_000_000, distance_km=2.0) for _ in range(4)],
        }
        target = ValuationRequest(TOKYO_ADDRESS, 70.0, 10, Purpose.SALE, search_radius_km_override=1.0)

        result = create_orchestrator(FakeSource(records, reference_date)).evaluate(target)

        assert result.sample_count == 6
        assert not result.radius_relaxed

    def test_lookback_override(self, create_orchestrator, reference_date):
        source = FakeSource(reference_date=reference_date)
        target = ValuationRequest(TOKYO_ADDRESS, 70.0, 10, Purpose.SALE, lookback_months_override=24)

        create_orchestrator(source).evaluate(target)

        primary_years = sorted(year for code, year in source.calls if code == "13")
        assert primary_years == [2022, 2023, 2024]


# =============================================================================
# Test: Result Shape
# =============================================================================

class TestResultShape:

    def test_top_comparables_ascending(self, create_orchestrator, target, tokyo_records, reference_date):
        result = create_orchestrator(FakeSource(tokyo_records, reference_date)).evaluate(target)

        prices = [c.corrected_price for c in result.comparables]
        assert len(prices) == 5
        assert prices == sorted(prices)

    def test_top_comparables_configurable(self, create_orchestrator, target, tokyo_records, reference_date):
        orchestrator = create_orchestrator(FakeSource(tokyo_records, reference_date), top_comparables=3)

        assert len(orchestrator.evaluate(target).comparables) == 3

    def test_market_features_and_recommendations(self, create_orchestrator, target, tokyo_records, reference_date):
        result = create_orchestrator(FakeSource(tokyo_records, reference_date)).evaluate(target)

        assert result.market_features.volume_trend == FeatureLevel.HIGH
        assert result.market_features.age_depreciation == FeatureLevel.MEDIUM
        assert result.data_diversity.area_bands == 1
        assert result.data_diversity.age_bands == 1
        assert len(result.recommendations) == 3
        assert result.to_dict()["recommendations"] == list(result.recommendations)

    def test_dict_request_accepted(self, create_orchestrator):
        result = create_orchestrator(None).evaluate({
            "address": TOKYO_ADDRESS,
            "area_sqm": "70",
            "age_years": 10,
            "purpose": "売却",
        })

        assert result.data_origin == DataOrigin.SYNTHETIC

    @pytest.mark.parametrize("area", ["inf", "nan", "1e400"])
    def test_non_finite_area_rejected_before_engine_work(self, create_orchestrator, area):
        with pytest.raises(InvalidValuationRequestError):
            create_orchestrator(None).evaluate({
                "address": TOKYO_ADDRESS,
                "area_sqm": area,
                "age_years": 10,
                "purpose": "sale",
            })

    def test_invalid_request_raises(self, create_orchestrator):
        with pytest.raises(InvalidValuationRequestError):
            create_orchestrator(None).evaluate({
                "address": "",
                "area_sqm": 0,
                "age_years": 10,
                "purpose": "sale",
            })


# =============================================================================
# Test: Determinism
# =============================================================================

class TestDeterminism:

    def test_same_seed_same_result(self, create_orchestrator, target):
        first = create_orchestrator(None).evaluate(target)
        second = create_orchestrator(None).evaluate(target)

        assert first.to_dict() == second.to_dict()

    def test_different_seed_different_result(self, create_orchestrator, target):
        first = create_orchestrator(None, seed="one").evaluate(target)
        second = create_orchestrator(None, seed="two").evaluate(target)

        assert first.to_dict() != second.to_dict()

    def test_concurrent_requests_match_sequential(self, create_orchestrator, target):
        from concurrent.futures import ThreadPoolExecutor

        orchestrator = create_orchestrator(None)
        expected = orchestrator.evaluate(target).to_dict()

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: orchestrator.evaluate(target).to_dict(), range(4)))

        assert all(r == expected for r in results)


# =============================================================================
# Test: Module-level evaluate
# =============================================================================

class TestEvaluateFunction:

    def test_evaluate_from_config(self):
        config = Config(reinfolib_api_key=None, valuation_seed="cfg-seed")

        result = evaluate(
            {"address": TOKYO_ADDRESS, "area_sqm": 70, "age_years": 10, "purpose": "sale"},
            config=config,
        )

        assert result.data_origin == DataOrigin.SYNTHETIC
        assert result.sample_count == 800
