"""
Tests for environment-driven configuration.
"""

from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from utils.config import Config


class TestConfig:

    def test_defaults(self, monkeypatch):
        for name in ("REINFOLIB_API_KEY", "VALUATION_SEED", "FETCH_WORKERS", "REQUEST_DEADLINE", "TOP_COMPARABLES"):
            monkeypatch.delenv(name, raising=False)

        config = Config.load()

        assert config.reinfolib_api_key is None
        assert config.valuation_seed is None
        assert config.fetch_workers == 4
        assert config.request_deadline == 30.0
        assert config.top_comparables == 5

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("REINFOLIB_API_KEY", "secret")
        monkeypatch.setenv("FETCH_WORKERS", "8")
        monkeypatch.setenv("VALUATION_SEED", "demo")

        config = Config.load()

        assert config.reinfolib_api_key == "secret"
        assert config.fetch_workers == 8
        assert config.valuation_seed == "demo"

    def test_blank_key_is_unset(self, monkeypatch):
        monkeypatch.setenv("REINFOLIB_API_KEY", "   ")

        assert Config.load().reinfolib_api_key is None

    def test_to_dict_masks_key(self):
        config = Config(reinfolib_api_key="secret")

        assert config.to_dict()["reinfolib_api_key"] == "***"
        assert "secret" not in str(config.to_dict())
