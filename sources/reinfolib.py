"""
MLIT Real Estate Information Library (reinfolib) source.

Fetches transaction-price records from the XIT001 endpoint, one call per
(prefecture, year), and normalises them to RawComparable.

Requires an API key (REINFOLIB_API_KEY). Without one the source reports
itself unavailable and is never queried.
"""

import logging
import math
import re
from datetime import date
from typing import Any, List, Optional

import requests

from core.comp_engine.errors import DataSourceUnavailableError
from core.comp_engine.models import Purpose, RawComparable

from .base import ComparableSource

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_BASE_URL = "https://www.reinfolib.mlit.go.jp/ex-api/external"
TRANSACTION_ENDPOINT = "XIT001"
PRICE_CLASSIFICATION_TRANSACTION = "01"
API_KEY_HEADER = "Ocp-Apim-Subscription-Key"
REQUEST_TIMEOUT_SECONDS = 15

# Japanese era start offsets (era year 1 == offset + 1)
ERA_OFFSETS = {
    "令和": 2018,
    "平成": 1988,
    "昭和": 1925,
}

_NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")
_WESTERN_YEAR_PATTERN = re.compile(r"^(\d{4})")
_ERA_YEAR_PATTERN = re.compile(r"^(令和|平成|昭和)(元|\d+)")
_PERIOD_PATTERN = re.compile(r"(\d{4})年第(\d)四半期")


# =============================================================================
# Record Parser
# =============================================================================

class ReinfolibRecordParser:
    """
    Converts reinfolib JSON records to RawComparable.

    Accepts both the MLIT field names (Prefecture, Municipality,
    DistrictName, TradePrice, Area, BuildingYear, Period) and generic
    names (address, price, area, age, transaction_date, distance_km).
    Records without a usable price or area are dropped.
    """

    def __init__(self, reference_date: date = None):
        self._reference_date = reference_date or date.today()

    def parse(self, records: List[Any], region_code: str = "", source_id: str = "") -> List[RawComparable]:
        results = []
        for record in records:
            if not isinstance(record, dict):
                continue
            comp = self.parse_record(record, region_code, source_id)
            if comp is not None:
                results.append(comp)
        return results

    def parse_record(self, record: dict, region_code: str = "", source_id: str = "") -> Optional[RawComparable]:
        price = self._parse_number(record.get("TradePrice", record.get("price")))
        area = self._parse_number(record.get("Area", record.get("area")))
        if price is None or area is None:
            return None

        return RawComparable(
            address=self._parse_address(record),
            price=int(price),
            area_sqm=float(area),
            age_years=self._parse_age(record),
            purpose=Purpose.SALE,
            transaction_date=self._parse_date(record),
            region_code=region_code,
            source_id=source_id,
            reported_distance_km=self._parse_number(record.get("distance_km")),
        )

    @staticmethod
    def _parse_number(value: Any) -> Optional[float]:
        """
        Parse numbers like 32000000, "32,000,000" or "2000㎡以上".

        Non-finite values (JSON NaN or Infinity) and overflowing integers
        return None.
        """
        if value is None or isinstance(value, bool):
            return None
        number = None
        if isinstance(value, (int, float)):
            try:
                number = float(value)
            except OverflowError:
                return None
        elif isinstance(value, str):
            match = _NUMBER_PATTERN.search(value.replace(",", ""))
            if match:
                number = float(match.group(0))
        if number is None or not math.isfinite(number):
            return None
        return number

    @staticmethod
    def _parse_address(record: dict) -> str:
        if record.get("address"):
            return str(record["address"])
        parts = [
            record.get("Prefecture") or "",
            record.get("Municipality") or "",
            record.get("DistrictName") or "",
        ]
        return "".join(str(p) for p in parts)

    def _parse_age(self, record: dict) -> int:
        """
        Building age in years.

        A record without any age information (e.g. a land-only
        transaction) is treated as new, age 0. An age or building year that
        is present but unparseable (pre-war, free text) becomes -1 so the
        validity filter drops the record.
        """
        if record.get("age") not in (None, ""):
            age = self._parse_number(record["age"])
            return int(age) if age is not None else -1

        building_year = record.get("BuildingYear")
        if building_year in (None, ""):
            return 0

        built = self.parse_building_year(building_year)
        if built is None:
            return -1
        return max(0, self._reference_date.year - built)

    @staticmethod
    def parse_building_year(value: Any) -> Optional[int]:
        """Parse "1995年", "平成7年" or "令和元年" into a western year."""
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if not isinstance(value, str):
            return None

        text = value.strip()
        match = _WESTERN_YEAR_PATTERN.match(text)
        if match:
            return int(match.group(1))

        match = _ERA_YEAR_PATTERN.match(text)
        if match:
            era, number = match.groups()
            era_year = 1 if number == "元" else int(number)
            return ERA_OFFSETS[era] + era_year

        return None

    def _parse_date(self, record: dict) -> Optional[date]:
        raw = record.get("transaction_date")
        if isinstance(raw, str) and raw:
            try:
                return date.fromisoformat(raw[:10])
            except ValueError:
                return None
        return self.parse_period(record.get("Period"))

    @staticmethod
    def parse_period(value: Any) -> Optional[date]:
        """Parse "2023年第1四半期" into the first day of that quarter."""
        if not isinstance(value, str):
            return None
        match = _PERIOD_PATTERN.search(value)
        if not match:
            return None
        year, quarter = int(match.group(1)), int(match.group(2))
        if not 1 <= quarter <= 4:
            return None
        return date(year, (quarter - 1) * 3 + 1, 1)


# =============================================================================
# Source
# =============================================================================

class ReinfolibComparableSource(ComparableSource):
    """
    Live comparable source backed by the reinfolib XIT001 endpoint.

    One HTTP GET per (region, year). Failures raise
    DataSourceUnavailableError and are never retried here.
    """

    source_id = "reinfolib"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        reference_date: date = None,
        session: requests.Session = None,
    ):
        """
        Initialize live source.

        Args:
            api_key: reinfolib subscription key (None disables the source)
            base_url: API base URL
            timeout: Per-call timeout in seconds
            reference_date: Date defining the current period (default: today)
            session: Optional pre-built requests session
        """
        super().__init__(reference_date=reference_date)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._parser = ReinfolibRecordParser(reference_date=self._reference_date)
        self._session = session or requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "Accept-Encoding": "gzip",
        })
        if api_key:
            self._session.headers[API_KEY_HEADER] = api_key
        else:
            logger.warning("reinfolib API key not configured; live source disabled")

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/{TRANSACTION_ENDPOINT}"

    def fetch_period(self, region_code: str, year: int) -> List[RawComparable]:
        if not self.is_available:
            raise DataSourceUnavailableError("API key not configured", region_code, year)

        try:
            response = self._session.get(
                self.endpoint,
                params={
                    "year": year,
                    "area": region_code,
                    "priceClassification": PRICE_CLASSIFICATION_TRANSACTION,
                },
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise DataSourceUnavailableError(str(exc), region_code, year) from exc

        if response.status_code == 429:
            raise DataSourceUnavailableError("rate limited (HTTP 429)", region_code, year)
        if not 200 <= response.status_code < 300:
            raise DataSourceUnavailableError(f"HTTP {response.status_code}", region_code, year)

        try:
            body = response.json()
        except ValueError as exc:
            raise DataSourceUnavailableError("undecodable response body", region_code, year) from exc

        if isinstance(body, dict):
            records = body.get("data") or []
        elif isinstance(body, list):
            records = body
        else:
            raise DataSourceUnavailableError("unexpected response shape", region_code, year)

        if not isinstance(records, list):
            raise DataSourceUnavailableError("unexpected response shape", region_code, year)

        comparables = self._parser.parse(records, region_code=region_code, source_id=self.source_id)
        logger.info(
            "Fetched %d records for region %s, %s (%d parsed)",
            len(records), region_code, year, len(comparables),
        )
        return comparables

    def close(self) -> None:
        """Close the session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
