"""
Tests for region resolution

Covers:
- Prefecture lookup by ordered substring match
- Sentinel default region for unmatched or malformed addresses
- Region profiles and adjacency
- Explicit resolution cache
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.comp_engine.models import RegionProfile
from core.comp_engine.regions import (
    DEFAULT_PROFILE,
    DEFAULT_REGION_CODE,
    LRURegionCache,
    RegionResolver,
    prefecture_name,
)


# =============================================================================
# Test Fixtures
# =============================================================================

class RecordingCache:
    """Dict-backed cache that records lookups."""

    def __init__(self):
        self.data = {}
        self.gets = []

    def get(self, address):
        self.gets.append(address)
        return self.data.get(address)

    def set(self, address, code):
        self.data[address] = code


@pytest.fixture
def resolver():
    return RegionResolver()


# =============================================================================
# Test: Resolution
# =============================================================================

class TestResolve:
    """Address -> prefecture code."""

    @pytest.mark.parametrize("address,expected", [
        ("東京都新宿区西新宿1-1-1", "13"),
        ("大阪府大阪市北区梅田1-1", "27"),
        ("北海道札幌市中央区北1条西2", "01"),
        ("沖縄県那覇市泉崎1-2-2", "47"),
        ("京都府京都市中京区", "26"),
    ])
    def test_known_prefectures(self, resolver, address, expected):
        assert resolver.resolve(address) == expected

    def test_first_match_in_table_order_wins(self, resolver):
        assert resolver.resolve("大阪府から東京都へ転居") == "13"

    @pytest.mark.parametrize("address", ["", "   ", "Springfield", "新宿区西新宿"])
    def test_unmatched_address_returns_default(self, resolver, address):
        assert resolver.resolve(address) == DEFAULT_REGION_CODE

    @pytest.mark.parametrize("address", [None, 42, ["東京都"]])
    def test_non_string_address_never_raises(self, resolver, address):
        assert resolver.resolve(address) == DEFAULT_REGION_CODE


class TestProfiles:
    """Region code -> search profile."""

    def test_tokyo_profile(self, resolver):
        assert resolver.profile_for("13") == RegionProfile(15.0, 120, 800)

    def test_osaka_profile(self, resolver):
        assert resolver.profile_for("27") == RegionProfile(12.0, 120, 700)

    @pytest.mark.parametrize("code", ["47", DEFAULT_REGION_CODE, "99"])
    def test_unmapped_codes_get_default(self, resolver, code):
        assert resolver.profile_for(code) == DEFAULT_PROFILE
        assert DEFAULT_PROFILE == RegionProfile(6.0, 120, 250)


class TestNeighbors:
    """Static adjacency table."""

    def test_tokyo_neighbors(self, resolver):
        assert resolver.neighbors_for("13") == ("11", "12", "14")

    def test_osaka_neighbors(self, resolver):
        assert resolver.neighbors_for("27") == ("26", "28", "29", "30")

    def test_unmapped_region_has_no_neighbors(self, resolver):
        assert resolver.neighbors_for("47") == ()

    def test_prefecture_name(self):
        assert prefecture_name("13") == "東京都"
        assert prefecture_name("00") is None


# =============================================================================
# Test: Cache
# =============================================================================

class TestRegionCache:
    """The resolver consults and fills an injected cache."""

    def test_resolution_is_cached(self):
        cache = RecordingCache()
        resolver = RegionResolver(cache=cache)

        assert resolver.resolve("東京都港区") == "13"
        assert cache.data["東京都港区"] == "13"

    def test_cached_value_is_used(self):
        cache = RecordingCache()
        cache.data["somewhere"] = "27"
        resolver = RegionResolver(cache=cache)

        assert resolver.resolve("somewhere") == "27"

    def test_lru_cache_evicts_oldest(self):
        cache = LRURegionCache(maxsize=2)
        cache.set("a", "01")
        cache.set("b", "02")
        cache.get("a")
        cache.set("c", "03")

        assert cache.get("a") == "01"
        assert cache.get("b") is None
        assert len(cache) == 2
