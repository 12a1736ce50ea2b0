"""
Address Similarity and Pseudo-Distance

Approximates proximity between two Japanese addresses without geocoding.
Addresses are split into prefecture, city/ward, locality and block, and
compared from the top down. The score is then mapped to a distance band
and a distance is drawn from that band.

The pseudo-distance is an approximation, not a geodesic distance. A real
geocoder would replace SimilarityEstimator behind the same interface.
"""

import random
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .models import RawComparable
from .regions import find_prefecture


# =============================================================================
# Configuration Constants
# =============================================================================

SCORE_DIFFERENT_PREFECTURE = 0.1
SCORE_DIFFERENT_CITY = 0.3
SCORE_DIFFERENT_LOCALITY = 0.5
SCORE_DIFFERENT_BLOCK = 0.7
SCORE_SAME_BLOCK = 0.9

# Distance bands (km), checked from the highest score down
DISTANCE_BANDS: Tuple[Tuple[float, Tuple[float, float]], ...] = (
    (0.8, (0.05, 0.25)),
    (0.6, (0.25, 0.75)),
    (0.4, (0.75, 1.75)),
)
FAR_BAND = (1.75, 2.25)

_FULLWIDTH_DIGITS = str.maketrans("０１２３４５６７８９－", "0123456789-")

_CITY_PATTERN = re.compile(r"^(.+?[市区町村])")
_LOCALITY_PATTERN = re.compile(r"^([^\d]+)")
_KANJI_CHOME_PATTERN = re.compile(r"^(.*?)([一二三四五六七八九十]+)丁目$")
_BLOCK_PATTERN = re.compile(r"(\d+)")

_KANJI_NUMERALS = {
    "一": 1, "二": 2, "三": 3, "四": 4, "五": 5,
    "六": 6, "七": 7, "八": 8, "九": 9, "十": 10,
}


@dataclass(frozen=True)
class AddressParts:
    """Hierarchical components of an address. Missing parts are None."""
    prefecture: Optional[str]
    city: Optional[str]
    locality: Optional[str]
    block: Optional[str]


def _kanji_to_number(text: str) -> str:
    if text == "十":
        return "10"
    if text.startswith("十"):
        return str(10 + _KANJI_NUMERALS.get(text[1:], 0))
    if text.endswith("十"):
        return str(_KANJI_NUMERALS.get(text[:-1], 1) * 10)
    if "十" in text:
        tens, ones = text.split("十", 1)
        return str(_KANJI_NUMERALS.get(tens, 1) * 10 + _KANJI_NUMERALS.get(ones, 0))
    return str(_KANJI_NUMERALS.get(text, 0))


def parse_address(address: str) -> AddressParts:
    """
    Split an address into prefecture, city/ward, locality and block.

    Examples:
        "東京都新宿区西新宿1-1-1"  -> (東京都, 新宿区, 西新宿, 1)
        "東京都新宿区西新宿二丁目"  -> (東京都, 新宿区, 西新宿, 2)
    """
    if not isinstance(address, str):
        return AddressParts(None, None, None, None)

    rest = address.strip().translate(_FULLWIDTH_DIGITS).replace(" ", "")

    prefecture = find_prefecture(rest)
    if prefecture:
        rest = rest.split(prefecture, 1)[1]

    city = None
    match = _CITY_PATTERN.match(rest)
    if match:
        city = match.group(1)
        rest = rest[match.end():]

    locality = None
    block = None
    match = _LOCALITY_PATTERN.match(rest)
    if match:
        locality = match.group(1)
        rest = rest[match.end():]
        chome = _KANJI_CHOME_PATTERN.match(locality)
        if chome:
            locality = chome.group(1)
            block = _kanji_to_number(chome.group(2))
        locality = locality.rstrip("-") or None

    if block is None:
        match = _BLOCK_PATTERN.search(rest)
        if match:
            block = str(int(match.group(1)))

    return AddressParts(prefecture, city, locality, block)


class SimilarityEstimator:
    """
    Scores address similarity and derives pseudo-distances from it.

    Randomness comes from the injected random.Random, so a seeded
    generator gives reproducible distances.
    """

    def __init__(self, rng: random.Random = None):
        """
        Initialize estimator.

        Args:
            rng: Random generator used to sample distances within a band
        """
        self._rng = rng or random.Random()

    @staticmethod
    def similarity(target_address: str, comparable_address: str) -> float:
        """Return a similarity score in {0.1, 0.3, 0.5, 0.7, 0.9}."""
        target = parse_address(target_address)
        other = parse_address(comparable_address)

        if target.prefecture != other.prefecture:
            return SCORE_DIFFERENT_PREFECTURE

        if target.city != other.city:
            return SCORE_DIFFERENT_CITY

        if target.locality != other.locality:
            return SCORE_DIFFERENT_LOCALITY

        if target.block and other.block and target.block != other.block:
            return SCORE_DIFFERENT_BLOCK

        return SCORE_SAME_BLOCK

    @staticmethod
    def band_for(score: float) -> Tuple[float, float]:
        """Return the (low, high) distance band in km for a score."""
        for threshold, band in DISTANCE_BANDS:
            if score > threshold:
                return band
        return FAR_BAND

    def pseudo_distance(self, target_address: str, comparable_address: str) -> float:
        """Sample an approximate distance in km from the score's band."""
        low, high = self.band_for(self.similarity(target_address, comparable_address))
        return self._rng.uniform(low, high)

    def distance_for(self, target_address: str, comparable: RawComparable) -> float:
        """Provider-reported distance when present, otherwise a pseudo-distance."""
        if comparable.reported_distance_km is not None and comparable.reported_distance_km >= 0:
            return float(comparable.reported_distance_km)
        return self.pseudo_distance(target_address, comparable.address)
