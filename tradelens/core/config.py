"""Configuration management for TradeLens."""

from datetime import tzinfo
from decimal import Decimal
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# System Configuration
# =============================================================================


class SystemConfig(BaseSettings):
    """System-level configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development", validation_alias="ENVIRONMENT"
    )
    app_name: str = Field(default="TradeLens", validation_alias="APP_NAME")
    app_version: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    # IANA zone for hour-of-day bucketing; unset means the local zone
    timezone: Optional[str] = Field(default=None, validation_alias="TIMEZONE")


# =============================================================================
# Deriverse API Configuration
# =============================================================================


class DeriverseAPIConfig(BaseSettings):
    """Dashboard API route that wraps the Deriverse SDK."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    api_url: str = Field(
        default="http://localhost:3000/api/deriverse",
        validation_alias="DERIVERSE_API_URL",
    )
    timeout: float = Field(default=10.0, validation_alias="DERIVERSE_TIMEOUT")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v):
        """Timeout must be positive."""
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v


# =============================================================================
# Price Feed Configuration
# =============================================================================


class PriceFeedConfig(BaseSettings):
    """Live price feed and cache settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Primary feed (dashboard route), consumed interactively
    price_cache_ttl_seconds: float = Field(
        default=10.0, validation_alias="PRICE_CACHE_TTL_SECONDS"
    )

    # Secondary feed (CoinGecko), only used when the primary is down
    fallback_cache_ttl_seconds: float = Field(
        default=30.0, validation_alias="FALLBACK_PRICE_CACHE_TTL_SECONDS"
    )
    coingecko_url: str = Field(
        default="https://api.coingecko.com/api/v3/simple/price",
        validation_alias="COINGECKO_URL",
    )
    fallback_enabled: bool = Field(default=True, validation_alias="FALLBACK_PRICES_ENABLED")
    timeout: float = Field(default=5.0, validation_alias="PRICE_FEED_TIMEOUT")

    @field_validator("price_cache_ttl_seconds", "fallback_cache_ttl_seconds", "timeout")
    @classmethod
    def validate_positive(cls, v):
        """Validate that durations are positive."""
        if v <= 0:
            raise ValueError("Durations must be positive")
        return v


# =============================================================================
# Reconciler Configuration
# =============================================================================


class ReconcilerConfig(BaseSettings):
    """Heuristics applied when rebuilding trades from raw transactions."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Estimated fee schedule as fractions of notional
    maker_fee_rate: Decimal = Field(default=Decimal("0.0002"), validation_alias="MAKER_FEE_RATE")
    taker_fee_rate: Decimal = Field(default=Decimal("0.0005"), validation_alias="TAKER_FEE_RATE")
    funding_fee_rate: Decimal = Field(default=Decimal("0.0001"), validation_alias="FUNDING_FEE_RATE")

    # Quantity used when a transaction carries no usable size
    default_quantity: Decimal = Field(default=Decimal("0.1"), validation_alias="DEFAULT_QUANTITY")

    # Balance deltas at or below this are treated as network fees only
    min_balance_delta: Decimal = Field(default=Decimal("0.001"), validation_alias="MIN_BALANCE_DELTA")

    @field_validator("maker_fee_rate", "taker_fee_rate", "funding_fee_rate")
    @classmethod
    def validate_rate(cls, v):
        """Validate that fee rates are between 0 and 1."""
        if v < 0 or v > 1:
            raise ValueError("Fee rate must be between 0 and 1")
        return v

    @field_validator("default_quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v <= 0:
            raise ValueError("Default quantity must be positive")
        return v


# =============================================================================
# Refresh Configuration
# =============================================================================


class RefreshConfig(BaseSettings):
    """Periodic PnL refresh."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    refresh_interval_seconds: float = Field(
        default=30.0, validation_alias="REFRESH_INTERVAL_SECONDS"
    )

    @field_validator("refresh_interval_seconds")
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("Refresh interval must be positive")
        return v


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_file: str = Field(default="logs/tradelens.log", validation_alias="LOG_FILE")
    log_to_file: bool = Field(default=True, validation_alias="LOG_TO_FILE")


# =============================================================================
# Global Configuration Container
# =============================================================================


class TradeLensConfig:
    """
    Container for all TradeLens configurations.

    Usage:
        from tradelens.core.config import app_config

        url = app_config.deriverse.api_url
        ttl = app_config.prices.price_cache_ttl_seconds
    """

    def __init__(self):
        self.system = SystemConfig()
        self.deriverse = DeriverseAPIConfig()
        self.prices = PriceFeedConfig()
        self.reconciler = ReconcilerConfig()
        self.refresh = RefreshConfig()
        self.logging = LoggingConfig()

    @property
    def is_production(self) -> bool:
        return self.system.environment == "production"

    @property
    def display_timezone(self) -> Optional[tzinfo]:
        """Zone for hour-of-day metrics (None means the local zone)."""
        return ZoneInfo(self.system.timezone) if self.system.timezone else None

    def validate_configuration(self) -> dict:
        """
        Validate the complete configuration and return any issues.

        Returns:
            Dictionary with 'valid' boolean and 'issues' list
        """
        issues = []

        if not self.deriverse.api_url.startswith(("http://", "https://")):
            issues.append(f"Deriverse API URL must be http(s): {self.deriverse.api_url}")

        if self.prices.fallback_cache_ttl_seconds < self.prices.price_cache_ttl_seconds:
            issues.append("Fallback price TTL should not be shorter than the primary TTL")

        if self.refresh.refresh_interval_seconds < self.prices.price_cache_ttl_seconds:
            issues.append("Refresh interval is shorter than the price cache TTL")

        if self.system.timezone:
            try:
                ZoneInfo(self.system.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                issues.append(f"Unknown timezone: {self.system.timezone}")

        return {"valid": len(issues) == 0, "issues": issues}


# =============================================================================
# Global Configuration Instances
# =============================================================================

logging_config = LoggingConfig()
app_config = TradeLensConfig()


__all__ = [
    "TradeLensConfig",
    "app_config",
    "logging_config",
    "SystemConfig",
    "DeriverseAPIConfig",
    "PriceFeedConfig",
    "ReconcilerConfig",
    "RefreshConfig",
    "LoggingConfig",
]
