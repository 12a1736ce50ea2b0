"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Live data source
    reinfolib_api_key: Optional[str] = field(default_factory=lambda: _optional_env("REINFOLIB_API_KEY"))
    reinfolib_base_url: str = field(
        default_factory=lambda: os.getenv(
            "REINFOLIB_BASE_URL", "https://www.reinfolib.mlit.go.jp/ex-api/external"
        )
    )
    request_timeout: float = field(default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "15")))

    # Engine
    fetch_workers: int = field(default_factory=lambda: int(os.getenv("FETCH_WORKERS", "4")))
    request_deadline: float = field(default_factory=lambda: float(os.getenv("REQUEST_DEADLINE", "30")))
    valuation_seed: Optional[str] = field(default_factory=lambda: _optional_env("VALUATION_SEED"))
    region_cache_size: int = field(default_factory=lambda: int(os.getenv("REGION_CACHE_SIZE", "256")))
    top_comparables: int = field(default_factory=lambda: int(os.getenv("TOP_COMPARABLES", "5")))

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary (API key masked)."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "reinfolib_api_key": "***" if self.reinfolib_api_key else None,
            "reinfolib_base_url": self.reinfolib_base_url,
            "request_timeout": self.request_timeout,
            "fetch_workers": self.fetch_workers,
            "request_deadline": self.request_deadline,
            "valuation_seed": self.valuation_seed,
            "region_cache_size": self.region_cache_size,
            "top_comparables": self.top_comparables,
        }
