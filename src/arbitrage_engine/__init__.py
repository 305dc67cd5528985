"""Arbitrage opportunity analysis engine."""

from .exceptions import (
    ArbitrageEngineError,
    InvalidInput,
    StaleData,
    PoolStateInvalid,
    ImpactExceeded,
    LiquidityInsufficient,
    ExternalCollaboratorError,
    ExternalCollaboratorTimeout
)
from .config import AnalysisConfig, EngineSettings, settings, configure_logging
from .core import PoolFamily, PoolState, PriceQuote, PairQuote, SpreadCalculator, ExecutionCosts
from .amm import calculate_price_impact, get_model
from .validation import LiquidityValidator, check_data_freshness
from .risk import RiskScorer, RiskInputs, RiskLevel
from .gas import GasEstimator, NetworkGasEstimator, GasOperation
from .feeds import QuoteFeed, SnapshotQuoteFeed, HttpQuoteFeed
from .cache import SnapshotCache
from .scanner import OpportunityScanner
from .engine import AnalysisOrchestrator, AnalysisResult, Recommendation, Scenario, create_engine

__version__ = "0.1.0"

__all__ = [
    "ArbitrageEngineError",
    "InvalidInput",
    "StaleData",
    "PoolStateInvalid",
    "ImpactExceeded",
    "LiquidityInsufficient",
    "ExternalCollaboratorError",
    "ExternalCollaboratorTimeout",
    "AnalysisConfig",
    "EngineSettings",
    "settings",
    "configure_logging",
    "PoolFamily",
    "PoolState",
    "PriceQuote",
    "PairQuote",
    "SpreadCalculator",
    "ExecutionCosts",
    "calculate_price_impact",
    "get_model",
    "LiquidityValidator",
    "check_data_freshness",
    "RiskScorer",
    "RiskInputs",
    "RiskLevel",
    "GasEstimator",
    "NetworkGasEstimator",
    "GasOperation",
    "QuoteFeed",
    "SnapshotQuoteFeed",
    "HttpQuoteFeed",
    "SnapshotCache",
    "OpportunityScanner",
    "AnalysisOrchestrator",
    "AnalysisResult",
    "Recommendation",
    "Scenario",
    "create_engine",
]
