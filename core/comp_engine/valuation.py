"""
Valuation Orchestrator

Runs the complete comparable-sales valuation for one request:
1. RESOLVE - Address to region code and search profile
2. FETCH - Live comparables for every period (concurrent, deadline-bound)
3. BROADEN - One ring of neighbouring regions when the sample is short
4. FALLBACK - Synthetic comparables when no valid live data exists
5. CORRECT - Distance, area and age corrections, then the radius filter
6. AGGREGATE - Statistics, price range, confidence
7. ANALYZE - Market labels and insights

Every stage degrades to a fallback; only invalid input raises.
"""

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple, Union

from sources.base import ComparableSource, periods_for
from sources.reinfolib import ReinfolibComparableSource
from sources.synthetic import SyntheticComparableSource
from utils.config import Config

from .correction import CorrectionModel
from .errors import DataSourceUnavailableError, InsufficientDataError
from .filters import ComparableValidityFilter, filter_by_radius
from .insights import MarketInsightAnalyzer
from .models import (
    ConfidenceLabel,
    DataOrigin,
    DataQuality,
    RawComparable,
    ValuationRequest,
    ValuationResult,
    ValuationStage,
)
from .regions import DEFAULT_REGION_CODE, LRURegionCache, RegionResolver
from .similarity import SimilarityEstimator
from .statistics import StatisticalAggregator

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

# Returned when no statistics can be computed
DEFAULT_PRICE_RANGE = (30_000_000, 40_000_000)

DEFAULT_FETCH_WORKERS = 4
DEFAULT_REQUEST_DEADLINE_SECONDS = 30.0
DEFAULT_TOP_COMPARABLES = 5

SyntheticFactory = Callable[..., ComparableSource]


@dataclass
class FetchOutcome:
    """Comparables gathered during the fetch stages of one request."""
    comparables: List[RawComparable] = field(default_factory=list)
    regions_queried: List[str] = field(default_factory=list)
    failed_fetches: int = 0
    deadline_exceeded: bool = False
    broadened: bool = False


class ValuationOrchestrator:
    """
    Complete valuation pipeline for a target property.

    Holds only read-only collaborators; all per-request state lives in
    local variables, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        live_source: Optional[ComparableSource] = None,
        resolver: RegionResolver = None,
        seed: Optional[str] = None,
        reference_date: date = None,
        fetch_workers: int = DEFAULT_FETCH_WORKERS,
        request_deadline: float = DEFAULT_REQUEST_DEADLINE_SECONDS,
        top_comparables: int = DEFAULT_TOP_COMPARABLES,
        synthetic_factory: SyntheticFactory = SyntheticComparableSource,
    ):
        """
        Initialize orchestrator.

        Args:
            live_source: Provider of live comparables (None: synthetic only)
            resolver: Region resolver (default: uncached resolver)
            seed: Seed for reproducible results (None: fresh entropy per request)
            reference_date: Date defining the current period (default: today)
            fetch_workers: Maximum concurrent live fetches per request
            request_deadline: Seconds to wait for all live fetches of a request
            top_comparables: Number of comparables returned with the result
            synthetic_factory: Builds the per-request synthetic source
        """
        self._live_source = live_source
        self._resolver = resolver or RegionResolver()
        self._seed = seed
        self._reference_date = reference_date
        self._fetch_workers = max(1, fetch_workers)
        self._request_deadline = request_deadline
        self._top_comparables = max(0, top_comparables)
        self._synthetic_factory = synthetic_factory

        self._validity = ComparableValidityFilter()
        self._correction = CorrectionModel()
        self._aggregator = StatisticalAggregator()
        self._analyzer = MarketInsightAnalyzer()

    @classmethod
    def from_config(cls, config: Config = None) -> "ValuationOrchestrator":
        """Build an orchestrator and its collaborators from configuration."""
        config = config or Config.load()
        live_source = ReinfolibComparableSource(
            api_key=config.reinfolib_api_key,
            base_url=config.reinfolib_base_url,
            timeout=config.request_timeout,
        )
        return cls(
            live_source=live_source,
            resolver=RegionResolver(cache=LRURegionCache(maxsize=config.region_cache_size)),
            seed=config.valuation_seed,
            fetch_workers=config.fetch_workers,
            request_deadline=config.request_deadline,
            top_comparables=config.top_comparables,
        )

    def evaluate(self, request: Union[ValuationRequest, dict]) -> ValuationResult:
        """
        Value the target property.

        Args:
            request: ValuationRequest, or a dict accepted by ValuationRequest.from_dict

        Returns:
            ValuationResult (always, for valid input)

        Raises:
            InvalidValuationRequestError: If the request is invalid
        """
        if not isinstance(request, ValuationRequest):
            request = ValuationRequest.from_dict(request)

        reference_date = self._reference_date or date.today()
        rng = self._rng_for(request)
        stages = []

        # Step 1: Resolve region and search profile
        self._enter(stages, ValuationStage.RESOLVING_REGION)
        region_code = self._resolver.resolve(request.address)
        profile = self._resolver.profile_for(region_code)
        lookback_months = request.lookback_months_override or profile.lookback_months
        radius_km = request.search_radius_km_override or profile.search_radius_km
        periods_back = lookback_months // 12

        # Step 2-3: Live comparables, broadening when short
        self._enter(stages, ValuationStage.FETCHING_COMPARABLES)
        outcome = self._fetch_live(region_code, profile.minimum_sample_size, periods_back, reference_date)
        if outcome.broadened:
            self._enter(stages, ValuationStage.BROADENING_SCOPE)

        # Step 4: Synthetic fallback
        comparables = outcome.comparables
        if comparables:
            data_origin = DataOrigin.LIVE
            data_quality = (
                DataQuality.ADEQUATE
                if len(comparables) >= profile.minimum_sample_size
                else DataQuality.LIMITED
            )
        else:
            logger.info(
                "No valid live comparables for region %s, generating %d synthetic records",
                region_code, profile.minimum_sample_size,
            )
            synthetic = self._synthetic_factory(
                target=request,
                sample_size=profile.minimum_sample_size,
                rng=rng,
                region_code=region_code,
                periods_back=periods_back,
                reference_date=reference_date,
            )
            comparables = synthetic.fetch(region_code, periods_back)
            data_origin = DataOrigin.SYNTHETIC
            data_quality = DataQuality.SYNTHETIC

        # Step 5: Corrections and radius
        self._enter(stages, ValuationStage.CORRECTING)
        estimator = SimilarityEstimator(rng=rng)
        distances = [estimator.distance_for(request.address, c) for c in comparables]
        corrected = self._correction.correct_all(request, comparables, distances)
        corrected, radius_relaxed = filter_by_radius(corrected, radius_km)

        # Step 6: Aggregate
        self._enter(stages, ValuationStage.AGGREGATING)
        try:
            statistics = self._aggregator.aggregate(corrected)
            low, high = self._aggregator.price_range(statistics)
            confidence = self._aggregator.confidence_label(statistics.sample_count)
        except InsufficientDataError:
            logger.warning("No comparables to aggregate, returning default price range")
            statistics = None
            low, high = DEFAULT_PRICE_RANGE
            confidence = ConfidenceLabel.LOW
            data_quality = DataQuality.DEFAULT

        # Step 7: Market analysis
        self._enter(stages, ValuationStage.ANALYZING)
        analysis = self._analyzer.analyze(corrected, request, data_origin)

        self._enter(stages, ValuationStage.DONE)
        top = sorted(corrected, key=lambda c: c.corrected_price)[:self._top_comparables]

        return ValuationResult(
            price_range_low=low,
            price_range_high=high,
            estimated_price=(low + high) // 2,
            confidence_label=confidence,
            sample_count=len(corrected),
            market_trend=analysis.market_trend,
            price_trend=analysis.price_trend,
            investment_value=analysis.investment_value,
            insights=analysis.insights,
            market_features=analysis.market_features,
            data_diversity=analysis.data_diversity,
            recommendations=analysis.recommendations,
            comparables=tuple(top),
            data_origin=data_origin,
            data_quality=data_quality,
            region_code=region_code,
            region_profile=profile,
            statistics=statistics,
            regions_queried=tuple(outcome.regions_queried),
            failed_fetches=outcome.failed_fetches,
            deadline_exceeded=outcome.deadline_exceeded,
            radius_relaxed=radius_relaxed,
            stages=tuple(stages),
        )

    def _rng_for(self, request: ValuationRequest) -> random.Random:
        """Per-request generator: derived from the seed, or fresh entropy."""
        if self._seed is None:
            return random.Random()
        return random.Random(f"{self._seed}:{request.fingerprint()}")

    @staticmethod
    def _enter(stages: list, stage: ValuationStage) -> None:
        logger.debug("Valuation stage: %s", stage.value)
        stages.append(stage)

    def _live_source_usable(self, region_code: str) -> bool:
        if self._live_source is None:
            return False
        if region_code == DEFAULT_REGION_CODE:
            logger.info("Address did not resolve to a region, skipping live fetch")
            return False
        if not self._live_source.is_available:
            logger.info("Live source unavailable, skipping live fetch")
            return False
        return True

    def _fetch_live(
        self,
        region_code: str,
        minimum_sample_size: int,
        periods_back: int,
        reference_date: date,
    ) -> FetchOutcome:
        """
        Fetch and validate live comparables for the region.

        All periods of the primary region are fetched first. If the valid
        sample is below the minimum, neighbouring regions are queried for
        the latest period only.
        """
        outcome = FetchOutcome()
        if not self._live_source_usable(region_code):
            return outcome

        deadline = time.monotonic() + self._request_deadline
        years = periods_for(periods_back, reference_date)

        outcome.regions_queried.append(region_code)
        self._collect(outcome, [(region_code, year) for year in years], deadline)

        neighbors = self._resolver.neighbors_for(region_code)
        if len(outcome.comparables) < minimum_sample_size and neighbors and not outcome.deadline_exceeded:
            logger.info(
                "Only %d valid comparables for region %s (minimum %d), adding neighbours %s",
                len(outcome.comparables), region_code, minimum_sample_size, ", ".join(neighbors),
            )
            outcome.broadened = True
            outcome.regions_queried.extend(neighbors)
            self._collect(outcome, [(code, years[-1]) for code in neighbors], deadline)

        return outcome

    def _collect(
        self,
        outcome: FetchOutcome,
        calls: Sequence[Tuple[str, int]],
        deadline: float,
    ) -> None:
        """Run fetch calls concurrently and merge valid records in call order."""
        records, failed, expired = self._fetch_concurrently(calls, deadline)
        outcome.comparables.extend(self._validity.filter(records))
        outcome.failed_fetches += failed
        outcome.deadline_exceeded = outcome.deadline_exceeded or expired

    def _fetch_concurrently(
        self,
        calls: Sequence[Tuple[str, int]],
        deadline: float,
    ) -> Tuple[List[RawComparable], int, bool]:
        """
        Execute (region, year) fetches on a bounded pool.

        Returns:
            Tuple of:
            - Records from completed calls, in submission order
            - Number of failed or timed-out calls
            - Whether the deadline expired with calls still pending
        """
        if not calls:
            return [], 0, False

        executor = ThreadPoolExecutor(
            max_workers=min(self._fetch_workers, len(calls)),
            thread_name_prefix="comparable-fetch",
        )
        try:
            futures = [
                executor.submit(self._live_source.fetch_period, code, year)
                for code, year in calls
            ]
            done, pending = wait(futures, timeout=max(0.0, deadline - time.monotonic()))
        finally:
            # Never block the request on stragglers
            executor.shutdown(wait=False, cancel_futures=True)

        if pending:
            logger.warning(
                "Request deadline exceeded with %d of %d fetches pending", len(pending), len(calls)
            )

        records: List[RawComparable] = []
        failed = 0
        for (code, year), future in zip(calls, futures):
            if future not in done:
                failed += 1
                continue
            try:
                records.extend(future.result())
            except DataSourceUnavailableError as exc:
                logger.warning("Fetch failed for region %s, %s: %s", code, year, exc.reason)
                failed += 1
            except Exception:
                logger.exception("Unexpected error fetching region %s, %s", code, year)
                failed += 1

        return records, failed, bool(pending)


def evaluate(request: Union[ValuationRequest, dict], config: Config = None) -> ValuationResult:
    """
    Value a property with an orchestrator built from configuration.

    Convenience function for one-off use; long-running callers should build
    a ValuationOrchestrator once and reuse it.
    """
    return ValuationOrchestrator.from_config(config).evaluate(request)
