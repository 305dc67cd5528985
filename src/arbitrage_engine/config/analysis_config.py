"""Per-call analysis configuration.

Every stage of the pipeline reads its thresholds from an immutable
``AnalysisConfig``. Callers vary a run (scenario simulation, calibration)
by building a new instance with ``dataclasses.replace`` rather than
mutating shared state.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from .settings import EngineSettings, settings as default_settings


def _default_protocol_floors() -> Dict[str, Decimal]:
    return {
        "constant_product": Decimal("1000"),
        "concentrated_liquidity": Decimal("500"),
        "weighted_pool": Decimal("1000"),
        "stable_swap": Decimal("10000"),
    }


def _default_risk_weights() -> Dict[str, float]:
    return {
        "volatility": 0.25,
        "liquidity": 0.20,
        "slippage": 0.20,
        "time": 0.15,
        "gas": 0.15,
        "congestion": 0.05,
    }


@dataclass(frozen=True)
class RiskConfig:
    """Normalizers, weights and level thresholds for risk scoring."""
    # Sub-score normalizers
    volatility_scale: float = 0.10            # 10% volatility scores 1.0
    liquidity_reference_usd: float = 100_000.0
    slippage_scale: float = 0.05              # 5% slippage scores 1.0
    time_scale_ms: float = 30_000.0
    gas_baseline_gwei: float = 20.0
    gas_multiple: float = 3.0
    congestion_scale: float = 100.0

    weights: Mapping[str, float] = field(default_factory=_default_risk_weights)

    # Level thresholds (inclusive upper bounds)
    low_threshold: float = 0.3
    medium_threshold: float = 0.5
    high_threshold: float = 0.7

    acceptable_threshold: float = 0.7


@dataclass(frozen=True)
class LiquidityConfig:
    """Limits used by the liquidity validator."""
    max_price_impact: Decimal = Decimal("0.05")
    min_liquidity_usd: Decimal = Decimal("10000")
    max_slippage: Decimal = Decimal("0.03")
    min_trade_size: Decimal = Decimal("100")
    max_trade_size: Decimal = Decimal("1000000")

    protocol_min_liquidity: Mapping[str, Decimal] = field(default_factory=_default_protocol_floors)
    max_trade_to_reserve_ratio: Decimal = Decimal("0.1")

    # Depth ratio category bounds
    depth_low: Decimal = Decimal("0.01")
    depth_medium: Decimal = Decimal("0.05")
    depth_high: Decimal = Decimal("0.1")

    reduce_size_impact_pct: Decimal = Decimal("3")
    low_utilization_threshold: Decimal = Decimal("0.1")


@dataclass(frozen=True)
class ScannerConfig:
    """Detection, filtering and validation parameters for scanning."""
    min_profit_threshold: Decimal = Decimal("0.005")
    min_spread_bps: int = 50
    max_quote_age_seconds: float = 30.0
    min_liquidity_usd: Decimal = Decimal("10000")
    max_execution_time_ms: int = 180_000
    base_execution_time_ms: int = 30_000
    cross_chain_time_multiplier: int = 3
    high_complexity_time_multiplier: int = 2
    venue_timeout_seconds: float = 5.0
    max_concurrent_scans: int = 10
    cache_ttl_seconds: float = 15.0
    max_aggregate_results: int = 10


@dataclass(frozen=True)
class CompositeWeights:
    """Weights and component values for the final composite score."""
    profit: float = 0.4
    liquidity: float = 0.3
    risk: float = 0.2
    gas: float = 0.1
    profit_normalizer_pct: float = 5.0
    gas_recommended_score: float = 0.8
    gas_default_score: float = 0.5


@dataclass(frozen=True)
class AnalysisConfig:
    """Complete configuration for one analysis run."""
    min_spread_percentage: Decimal = Decimal("0.1")

    # Net-profit cost model
    protocol_fee_rate: Decimal = Decimal("0.003")
    default_slippage_rate: Decimal = Decimal("0.01")
    bridge_fee_usd: Decimal = Decimal("10")

    # Market defaults when the caller supplies none
    default_volatility: float = 0.02
    default_congestion: float = 30.0
    default_max_execution_time_s: float = 300.0

    executable_score_threshold: float = 0.6

    # Freshness guard
    max_data_age_seconds: float = 60.0
    real_data_only: bool = True

    # Gas estimator call
    gas_timeout_seconds: float = 5.0
    fallback_gas_cost_usd: Decimal = Decimal("50")

    risk: RiskConfig = field(default_factory=RiskConfig)
    liquidity: LiquidityConfig = field(default_factory=LiquidityConfig)
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    weights: CompositeWeights = field(default_factory=CompositeWeights)

    @classmethod
    def from_settings(cls, engine_settings: Optional[EngineSettings] = None) -> "AnalysisConfig":
        """Build a configuration from environment settings."""
        s = engine_settings or default_settings
        return cls(
            min_spread_percentage=Decimal(str(s.min_spread_percentage)),
            max_data_age_seconds=s.max_data_age_seconds,
            real_data_only=s.real_data_only,
            gas_timeout_seconds=s.gas_timeout_seconds,
            fallback_gas_cost_usd=Decimal(str(s.fallback_gas_cost_usd)),
            liquidity=LiquidityConfig(
                max_price_impact=Decimal(str(s.max_price_impact)),
                min_liquidity_usd=Decimal(str(s.min_liquidity_usd)),
                min_trade_size=Decimal(str(s.min_trade_size)),
                max_trade_size=Decimal(str(s.max_trade_size)),
            ),
            scanner=ScannerConfig(
                min_profit_threshold=Decimal(str(s.min_profit_threshold)),
                min_spread_bps=s.min_spread_bps,
                max_quote_age_seconds=s.max_quote_age_seconds,
                min_liquidity_usd=Decimal(str(s.min_liquidity_usd)),
                max_execution_time_ms=s.max_execution_time_ms,
                venue_timeout_seconds=s.venue_timeout_seconds,
                max_concurrent_scans=s.max_concurrent_scans,
                cache_ttl_seconds=s.cache_ttl_seconds,
            ),
        )

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "AnalysisConfig":
        """
        Return a copy with top-level and nested overrides applied.

        Nested sections are addressed with dotted keys, e.g.
        ``{"liquidity.max_price_impact": Decimal("0.02")}``.
        """
        if not overrides:
            return self

        top: Dict[str, Any] = {}
        nested: Dict[str, Dict[str, Any]] = {}
        for key, value in overrides.items():
            if "." in key:
                section, name = key.split(".", 1)
                nested.setdefault(section, {})[name] = value
            else:
                top[key] = value

        for section, values in nested.items():
            current = getattr(self, section)
            top[section] = replace(current, **values)

        return replace(self, **top)
