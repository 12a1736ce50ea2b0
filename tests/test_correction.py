"""
Tests for the correction model

Covers:
- Distance factor decay and bounds
- Area factor bands (comparable smaller / larger than the target)
- Age factor steps
- Corrected price = round(price x total factor)
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.comp_engine.correction import (
    CorrectionModel,
    age_factor,
    area_factor,
    distance_factor,
)
from core.comp_engine.models import Purpose, RawComparable, ValuationRequest


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def target():
    return ValuationRequest("東京都新宿区西新宿1-1-1", 70.0, 10, Purpose.SALE)


@pytest.fixture
def create_comp():
    """Factory fixture for raw comparables."""
    def _create(price=30_000_000, area_sqm=70.0, age_years=10):
        return RawComparable(
            address="東京都新宿区西新宿1-2-3",
            price=price,
            area_sqm=area_sqm,
            age_years=age_years,
            purpose=Purpose.SALE,
        )
    return _create


# =============================================================================
# Test: Factors
# =============================================================================

class TestDistanceFactor:
    """Linear decay, floored at 0.7 and capped at 1.0."""

    def test_zero_distance(self):
        assert distance_factor(0.0) == 1.0

    def test_one_kilometre(self):
        assert distance_factor(1.0) == pytest.approx(0.85)

    def test_floor(self):
        assert distance_factor(2.0) == pytest.approx(0.7)
        assert distance_factor(25.0) == 0.7

    def test_cap(self):
        assert distance_factor(-1.0) == 1.0

    def test_always_in_bounds(self):
        for km in [0, 0.05, 0.3, 0.75, 1.2, 1.75, 2.25, 10]:
            assert 0.7 <= distance_factor(km) <= 1.0


class TestAreaFactor:
    """Ratio r = target / comparable."""

    def test_comparable_half_the_size(self):
        assert area_factor(70.0, 35.0) == 0.9

    def test_comparable_twice_the_size(self):
        assert area_factor(70.0, 140.0) == 1.1

    @pytest.mark.parametrize("comp_area", [58.4, 65.0, 70.0, 80.0, 87.5])
    def test_within_tolerance(self, comp_area):
        assert area_factor(70.0, comp_area) == 1.0


class TestAgeFactor:
    """Stepped by absolute age difference."""

    @pytest.mark.parametrize("diff,expected", [
        (0, 1.0),
        (5, 1.0),
        (6, 0.95),
        (10, 0.95),
        (11, 0.9),
        (20, 0.9),
        (25, 0.85),
        (-12, 0.9),
    ])
    def test_steps(self, diff, expected):
        assert age_factor(diff) == expected


# =============================================================================
# Test: Correction
# =============================================================================

class TestCorrectionModel:
    """Corrected comparables carry every factor."""

    def test_identical_comparable_at_zero_distance(self, target, create_comp):
        corrected = CorrectionModel().correct(target, create_comp(), 0.0)

        assert corrected.total_factor == 1.0
        assert corrected.corrected_price == 30_000_000

    def test_combined_factors(self, target, create_comp):
        comp = create_comp(price=31_000_000, area_sqm=35.0, age_years=35)
        corrected = CorrectionModel().correct(target, comp, 1.0)

        assert corrected.distance_factor == pytest.approx(0.85)
        assert corrected.area_factor == 0.9
        assert corrected.age_factor == 0.85
        assert corrected.total_factor == pytest.approx(0.85 * 0.9 * 0.85)
        assert corrected.corrected_price == pytest.approx(31_000_000 * 0.85 * 0.9 * 0.85, abs=1)
        assert corrected.comparable is comp

    def test_correct_all_preserves_order(self, target, create_comp):
        comps = [create_comp(price=p) for p in (20_000_000, 40_000_000, 30_000_000)]
        corrected = CorrectionModel().correct_all(target, comps, [0.0, 0.0, 0.0])

        assert [c.corrected_price for c in corrected] == [20_000_000, 40_000_000, 30_000_000]

    def test_correct_all_length_mismatch(self, target, create_comp):
        with pytest.raises(ValueError):
            CorrectionModel().correct_all(target, [create_comp()], [0.1, 0.2])
