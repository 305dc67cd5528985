"""Input validation: data freshness and pool liquidity."""

from .freshness import (
    check_data_freshness,
    normalize_timestamp,
    SIMULATION_MARKERS
)
from .liquidity_validator import (
    LiquidityValidator,
    LiquidityValidationResult,
    LiquidityMetrics,
    ProtocolCheck,
    DepthAnalysis,
    DepthCategory,
    LiquidityRisk,
    LiquidityRiskAssessment,
    LiquidityRiskLevel,
    RiskType,
    RecommendationType,
    TradeRecommendation
)

__all__ = [
    "check_data_freshness",
    "normalize_timestamp",
    "SIMULATION_MARKERS",
    "LiquidityValidator",
    "LiquidityValidationResult",
    "LiquidityMetrics",
    "ProtocolCheck",
    "DepthAnalysis",
    "DepthCategory",
    "LiquidityRisk",
    "LiquidityRiskAssessment",
    "LiquidityRiskLevel",
    "RiskType",
    "RecommendationType",
    "TradeRecommendation",
]
