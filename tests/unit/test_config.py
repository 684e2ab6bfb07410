"""Unit tests for configuration classes in TradeLens."""
import pytest
from decimal import Decimal
from zoneinfo import ZoneInfo

from tradelens.core.config import (
    DeriverseAPIConfig,
    LoggingConfig,
    PriceFeedConfig,
    ReconcilerConfig,
    RefreshConfig,
    SystemConfig,
    TradeLensConfig,
)


# =============================================================================
# SystemConfig Tests
# =============================================================================

class TestSystemConfig:
    """Test SystemConfig configuration."""

    def test_system_config_defaults(self):
        """Test SystemConfig default values."""
        config = SystemConfig()

        assert config.environment == "development"
        assert config.app_name == "TradeLens"
        assert config.timezone is None

    def test_system_config_environment_validation(self):
        """Test SystemConfig environment validation."""
        for environment in ["development", "staging", "production"]:
            assert SystemConfig(environment=environment).environment == environment

        with pytest.raises(ValueError):
            SystemConfig(environment="invalid")

    def test_timezone_from_env(self, monkeypatch):
        monkeypatch.setenv("TIMEZONE", "Europe/Berlin")
        assert SystemConfig().timezone == "Europe/Berlin"


# =============================================================================
# DeriverseAPIConfig Tests
# =============================================================================

class TestDeriverseAPIConfig:
    """Test DeriverseAPIConfig configuration."""

    def test_defaults(self):
        config = DeriverseAPIConfig()

        assert config.api_url == "http://localhost:3000/api/deriverse"
        assert config.timeout == 10.0

    def test_only_route_settings(self, monkeypatch):
        monkeypatch.setenv("DERIVERSE_PROGRAM_ID", "Drvrseg8AQLP8B96DBGmHRjFGviFNYTkHueY9g3k27Gu")

        config = DeriverseAPIConfig()

        assert set(DeriverseAPIConfig.model_fields) == {"api_url", "timeout"}
        assert not hasattr(config, "program_id")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DERIVERSE_API_URL", "https://dash.example.com/api/deriverse")
        monkeypatch.setenv("DERIVERSE_TIMEOUT", "2.5")

        config = DeriverseAPIConfig()

        assert config.api_url == "https://dash.example.com/api/deriverse"
        assert config.timeout == 2.5

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            DeriverseAPIConfig(timeout=0)


# =============================================================================
# PriceFeedConfig Tests
# =============================================================================

class TestPriceFeedConfig:
    """Test price feed settings."""

    def test_defaults(self):
        config = PriceFeedConfig()

        assert config.price_cache_ttl_seconds == 10.0
        assert config.fallback_cache_ttl_seconds == 30.0
        assert config.fallback_enabled is True

    def test_durations_must_be_positive(self):
        with pytest.raises(ValueError):
            PriceFeedConfig(price_cache_ttl_seconds=0)
        with pytest.raises(ValueError):
            PriceFeedConfig(fallback_cache_ttl_seconds=-1)


# =============================================================================
# ReconcilerConfig Tests
# =============================================================================

class TestReconcilerConfig:
    """Test reconstruction settings."""

    def test_defaults(self):
        config = ReconcilerConfig()

        assert config.maker_fee_rate == Decimal("0.0002")
        assert config.taker_fee_rate == Decimal("0.0005")
        assert config.funding_fee_rate == Decimal("0.0001")
        assert config.default_quantity == Decimal("0.1")
        assert config.min_balance_delta == Decimal("0.001")

    def test_fee_rate_validation(self):
        with pytest.raises(ValueError):
            ReconcilerConfig(taker_fee_rate=Decimal("1.5"))
        with pytest.raises(ValueError):
            ReconcilerConfig(maker_fee_rate=Decimal("-0.1"))

    def test_default_quantity_validation(self):
        with pytest.raises(ValueError):
            ReconcilerConfig(default_quantity=Decimal("0"))


class TestRefreshAndLoggingConfig:
    """Test refresh and logging settings."""

    def test_refresh_defaults(self):
        assert RefreshConfig().refresh_interval_seconds == 30.0

    def test_refresh_interval_validation(self):
        with pytest.raises(ValueError):
            RefreshConfig(refresh_interval_seconds=0)

    def test_log_level_validation(self):
        assert LoggingConfig(log_level="DEBUG").log_level == "DEBUG"
        with pytest.raises(ValueError):
            LoggingConfig(log_level="VERBOSE")


# =============================================================================
# TradeLensConfig Tests
# =============================================================================

class TestTradeLensConfig:
    """Test the configuration container."""

    def test_initialization(self):
        config = TradeLensConfig()

        assert isinstance(config.system, SystemConfig)
        assert isinstance(config.deriverse, DeriverseAPIConfig)
        assert isinstance(config.prices, PriceFeedConfig)
        assert isinstance(config.reconciler, ReconcilerConfig)
        assert isinstance(config.refresh, RefreshConfig)
        assert not config.is_production

    def test_defaults_are_valid(self):
        validation = TradeLensConfig().validate_configuration()

        assert validation["valid"]
        assert validation["issues"] == []

    def test_display_timezone(self):
        config = TradeLensConfig()
        assert config.display_timezone is None

        config.system = SystemConfig(timezone="America/New_York")
        assert config.display_timezone == ZoneInfo("America/New_York")

    def test_unknown_timezone_reported(self):
        config = TradeLensConfig()
        config.system = SystemConfig(timezone="Mars/Olympus_Mons")

        validation = config.validate_configuration()

        assert not validation["valid"]
        assert any("timezone" in issue for issue in validation["issues"])

    def test_invalid_url_reported(self):
        config = TradeLensConfig()
        config.deriverse = DeriverseAPIConfig(api_url="ftp://example.com")

        assert not config.validate_configuration()["valid"]

    def test_ttl_ordering_reported(self):
        config = TradeLensConfig()
        config.prices = PriceFeedConfig(
            price_cache_ttl_seconds=60, fallback_cache_ttl_seconds=30
        )

        issues = config.validate_configuration()["issues"]

        assert any("Fallback price TTL" in issue for issue in issues)
        assert any("Refresh interval" in issue for issue in issues)
