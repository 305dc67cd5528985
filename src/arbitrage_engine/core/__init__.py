"""Core types and arithmetic."""

from .models import (
    PoolFamily,
    PROTOCOL_FAMILIES,
    family_for_protocol,
    TradeDirection,
    OpportunityType,
    Complexity,
    Token,
    PoolState,
    PriceQuote,
    PairQuote,
    SpreadResult,
    CostBreakdown,
    NetProfitAnalysis,
    PriceImpactResult,
    ProfitEstimate,
    OpportunityValidation,
    OpportunityMetadata,
    Opportunity,
    VenueError,
    ScanResult,
    TriangularScanResult,
    MultiScanResult
)
from .spread_calculator import (
    ExecutionCosts,
    SpreadCalculator,
    calculate_spread,
    calculate_net_profit
)

__all__ = [
    "PoolFamily",
    "PROTOCOL_FAMILIES",
    "family_for_protocol",
    "TradeDirection",
    "OpportunityType",
    "Complexity",
    "Token",
    "PoolState",
    "PriceQuote",
    "PairQuote",
    "SpreadResult",
    "CostBreakdown",
    "NetProfitAnalysis",
    "PriceImpactResult",
    "ProfitEstimate",
    "OpportunityValidation",
    "OpportunityMetadata",
    "Opportunity",
    "VenueError",
    "ScanResult",
    "TriangularScanResult",
    "MultiScanResult",
    "ExecutionCosts",
    "SpreadCalculator",
    "calculate_spread",
    "calculate_net_profit",
]
