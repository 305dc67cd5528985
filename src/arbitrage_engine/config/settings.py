"""Engine settings and logging configuration."""
import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class EngineSettings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level",
        alias="ARB_LOG_LEVEL"
    )

    # Spread and profit thresholds
    min_spread_percentage: float = Field(
        default=0.1,
        description="Minimum relative spread (percent) for a valid spread",
        alias="ARB_MIN_SPREAD_PERCENTAGE"
    )

    min_profit_threshold: float = Field(
        default=0.005,
        description="Minimum profit ratio used by the scanner (0.005 = 0.5%)",
        alias="ARB_MIN_PROFIT_THRESHOLD"
    )

    min_spread_bps: int = Field(
        default=50,
        description="Minimum scanner spread in basis points",
        alias="ARB_MIN_SPREAD_BPS"
    )

    # AMM and liquidity limits
    max_price_impact: float = Field(
        default=0.05,
        description="Maximum acceptable price impact (0.05 = 5%)",
        alias="ARB_MAX_PRICE_IMPACT"
    )

    min_liquidity_usd: float = Field(
        default=10_000.0,
        description="Minimum pool liquidity in USD",
        alias="ARB_MIN_LIQUIDITY_USD"
    )

    min_trade_size: float = Field(
        default=100.0,
        description="Smallest trade the validator accepts",
        alias="ARB_MIN_TRADE_SIZE"
    )

    max_trade_size: float = Field(
        default=1_000_000.0,
        description="Largest trade the validator accepts",
        alias="ARB_MAX_TRADE_SIZE"
    )

    # Freshness
    max_quote_age_seconds: float = Field(
        default=30.0,
        description="Quotes older than this are excluded from scans",
        alias="ARB_MAX_QUOTE_AGE_SECONDS"
    )

    max_data_age_seconds: float = Field(
        default=60.0,
        description="Analysis payloads older than this are rejected",
        alias="ARB_MAX_DATA_AGE_SECONDS"
    )

    real_data_only: bool = Field(
        default=True,
        description="Reject simulated or placeholder market data",
        alias="ARB_REAL_DATA_ONLY"
    )

    max_execution_time_ms: int = Field(
        default=180_000,
        description="Opportunities slower than this are not executable",
        alias="ARB_MAX_EXECUTION_TIME_MS"
    )

    # External collaborators
    venue_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for a single venue quote request",
        alias="ARB_VENUE_TIMEOUT_SECONDS"
    )

    gas_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for a gas estimate request",
        alias="ARB_GAS_TIMEOUT_SECONDS"
    )

    fallback_gas_cost_usd: float = Field(
        default=50.0,
        description="Gas cost assumed when the gas estimator does not answer",
        alias="ARB_FALLBACK_GAS_COST_USD"
    )

    max_concurrent_scans: int = Field(
        default=10,
        description="Upper bound on concurrent token scans and analyses",
        alias="ARB_MAX_CONCURRENT_SCANS"
    )

    quote_feed_url: Optional[str] = Field(
        default=None,
        description="Base URL of the HTTP quote service",
        alias="ARB_QUOTE_FEED_URL"
    )

    quote_feed_api_key: Optional[str] = Field(
        default=None,
        description="API key for the HTTP quote service",
        alias="ARB_QUOTE_FEED_API_KEY"
    )

    # Caching
    cache_backend: str = Field(
        default="memory",
        description="Quote snapshot cache backend: memory or redis",
        alias="ARB_CACHE_BACKEND"
    )

    cache_ttl_seconds: float = Field(
        default=15.0,
        description="Quote snapshot cache TTL in seconds",
        alias="ARB_CACHE_TTL_SECONDS"
    )

    redis_url: Optional[str] = Field(
        default="redis://localhost:6379",
        description="Redis connection URL",
        alias="REDIS_URL"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "populate_by_name": True,
        "extra": "ignore"
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the engine."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Global settings instance
settings = EngineSettings()
