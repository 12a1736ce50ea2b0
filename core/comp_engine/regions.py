"""
Region resolution for the valuation engine.

Maps a free-text Japanese address to a two-digit prefecture code, and a
prefecture code to its search profile (radius, lookback window, minimum
sample size) and its ring of neighbouring prefectures.
"""

import logging
import threading
from typing import Dict, Optional, Protocol, Tuple

from cachetools import LRUCache

from .models import RegionProfile

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

# Returned when no prefecture name can be found in the address
DEFAULT_REGION_CODE = "00"

# Ordered prefecture table (JIS X 0401 codes). First substring match wins.
PREFECTURES: Tuple[Tuple[str, str], ...] = (
    ("北海道", "01"), ("青森県", "02"), ("岩手県", "03"), ("宮城県", "04"),
    ("秋田県", "05"), ("山形県", "06"), ("福島県", "07"), ("茨城県", "08"),
    ("栃木県", "09"), ("群馬県", "10"), ("埼玉県", "11"), ("千葉県", "12"),
    ("東京都", "13"), ("神奈川県", "14"), ("新潟県", "15"), ("富山県", "16"),
    ("石川県", "17"), ("福井県", "18"), ("山梨県", "19"), ("長野県", "20"),
    ("岐阜県", "21"), ("静岡県", "22"), ("愛知県", "23"), ("三重県", "24"),
    ("滋賀県", "25"), ("京都府", "26"), ("大阪府", "27"), ("兵庫県", "28"),
    ("奈良県", "29"), ("和歌山県", "30"), ("鳥取県", "31"), ("島根県", "32"),
    ("岡山県", "33"), ("広島県", "34"), ("山口県", "35"), ("徳島県", "36"),
    ("香川県", "37"), ("愛媛県", "38"), ("高知県", "39"), ("福岡県", "40"),
    ("佐賀県", "41"), ("長崎県", "42"), ("熊本県", "43"), ("大分県", "44"),
    ("宮崎県", "45"), ("鹿児島県", "46"), ("沖縄県", "47"),
)

_NAMES_BY_CODE: Dict[str, str] = {code: name for name, code in PREFECTURES}

# Search profiles: (radius km, lookback months, minimum sample size)
DEFAULT_PROFILE = RegionProfile(6.0, 120, 250)

REGION_PROFILES: Dict[str, RegionProfile] = {
    # Kanto
    "13": RegionProfile(15.0, 120, 800),
    "14": RegionProfile(12.0, 120, 600),
    "11": RegionProfile(10.0, 120, 500),
    "12": RegionProfile(10.0, 120, 500),
    # Kansai
    "27": RegionProfile(12.0, 120, 700),
    "28": RegionProfile(10.0, 120, 500),
    "26": RegionProfile(10.0, 120, 400),
    "29": RegionProfile(8.0, 120, 300),
    "30": RegionProfile(8.0, 120, 250),
    # Chubu
    "23": RegionProfile(10.0, 120, 500),
    "22": RegionProfile(8.0, 120, 400),
    "21": RegionProfile(8.0, 120, 300),
    # Other major cities
    "34": RegionProfile(8.0, 120, 400),
    "40": RegionProfile(8.0, 120, 400),
    "01": RegionProfile(6.0, 120, 300),
}

# One ring of neighbours, queried when the primary sample is short
NEIGHBORS: Dict[str, Tuple[str, ...]] = {
    "13": ("11", "12", "14"),
    "27": ("26", "28", "29", "30"),
    "23": ("21", "22", "24"),
    "34": ("33", "35", "36"),
    "40": ("41", "42", "43"),
}


def prefecture_name(code: str) -> Optional[str]:
    """Return the prefecture name for a code, or None if unknown."""
    return _NAMES_BY_CODE.get(code)


def find_prefecture(address) -> Optional[str]:
    """Return the first prefecture name contained in the address, if any."""
    if not isinstance(address, str):
        return None
    for name, _ in PREFECTURES:
        if name in address:
            return name
    return None


# =============================================================================
# Resolution Cache
# =============================================================================

class RegionCache(Protocol):
    """Minimal cache interface used by RegionResolver."""

    def get(self, address: str) -> Optional[str]:
        ...

    def set(self, address: str, code: str) -> None:
        ...


class LRURegionCache:
    """Thread-safe LRU cache of address -> region code."""

    def __init__(self, maxsize: int = 256):
        self._cache = LRUCache(maxsize=maxsize)
        self._lock = threading.Lock()

    def get(self, address: str) -> Optional[str]:
        with self._lock:
            return self._cache.get(address)

    def set(self, address: str, code: str) -> None:
        with self._lock:
            self._cache[address] = code

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


# =============================================================================
# Resolver
# =============================================================================

class RegionResolver:
    """
    Resolves addresses to region codes and region codes to search profiles.

    The tables are read-only; the optional cache is the only mutable state
    and is supplied by the caller.
    """

    def __init__(self, cache: Optional[RegionCache] = None):
        """
        Initialize resolver.

        Args:
            cache: Optional address -> code cache shared across requests
        """
        self._cache = cache

    def resolve(self, address) -> str:
        """
        Resolve an address to a two-digit prefecture code.

        Never raises: a missing, non-string or unmatched address yields
        DEFAULT_REGION_CODE.
        """
        if not isinstance(address, str) or not address.strip():
            logger.debug("Address missing or not a string, using default region")
            return DEFAULT_REGION_CODE

        if self._cache is not None:
            cached = self._cache.get(address)
            if cached is not None:
                return cached

        code = DEFAULT_REGION_CODE
        for name, candidate in PREFECTURES:
            if name in address:
                code = candidate
                break

        if code == DEFAULT_REGION_CODE:
            logger.info("No prefecture found in address %r, using default region", address)

        if self._cache is not None:
            self._cache.set(address, code)

        return code

    @staticmethod
    def profile_for(code: str) -> RegionProfile:
        """Return the search profile for a region code (default if unmapped)."""
        return REGION_PROFILES.get(code, DEFAULT_PROFILE)

    @staticmethod
    def neighbors_for(code: str) -> Tuple[str, ...]:
        """Return the neighbouring region codes (empty if none are mapped)."""
        return NEIGHBORS.get(code, ())

    @staticmethod
    def prefecture_name(code: str) -> Optional[str]:
        return prefecture_name(code)
