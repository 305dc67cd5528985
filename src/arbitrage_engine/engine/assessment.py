"""
Final assessment of an analyzed opportunity.

Turns the outputs of every pipeline stage into a composite score, an
executability decision, a recommendation, the critical factors behind it,
an execution plan for executable trades and alternatives worth trying.
"""
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..config.analysis_config import AnalysisConfig, CompositeWeights
from ..core.models import MultiScanResult, NetProfitAnalysis, Opportunity, SpreadResult
from ..core.precision import clamp, quantize
from ..gas.estimator import GasEstimate, GasStrategyPlan
from ..risk.risk_scorer import RiskAssessment, RiskLevel
from ..validation.liquidity_validator import (
    DepthCategory,
    LiquidityValidationResult,
    RecommendationType,
)
from .requests import OpportunityRequest, Scenario


class Recommendation(str, Enum):
    EXECUTE_IMMEDIATELY = "EXECUTE_IMMEDIATELY"
    EXECUTE_WITH_MONITORING = "EXECUTE_WITH_MONITORING"
    EXECUTE_WITH_CAUTION = "EXECUTE_WITH_CAUTION"
    DO_NOT_EXECUTE = "DO_NOT_EXECUTE"


class ViabilityTier(str, Enum):
    PREMIUM = "PREMIUM"
    GOOD = "GOOD"
    ACCEPTABLE = "ACCEPTABLE"


class AlternativeType(str, Enum):
    REDUCE_TRADE_SIZE = "REDUCE_TRADE_SIZE"
    SPLIT_TRADE = "SPLIT_TRADE"
    GAS_STRATEGY = "GAS_STRATEGY"
    WAIT_FOR_LOWER_CONGESTION = "WAIT_FOR_LOWER_CONGESTION"
    SAME_CHAIN_ROUTE = "SAME_CHAIN_ROUTE"


@dataclass(frozen=True)
class LegAnalysis:
    """Liquidity validation of one side of the trade."""
    side: str                       # "buy" or "sell"
    venue: str
    network: str
    pair: Tuple[str, str]           # (token_in, token_out)
    amount_in: Decimal
    validation: LiquidityValidationResult


@dataclass(frozen=True)
class ComponentScores:
    profit: float
    liquidity: float
    risk: float
    gas: float


@dataclass(frozen=True)
class CriticalFactor:
    factor: str
    severity: str                   # HIGH, MEDIUM, LOW
    message: str


@dataclass(frozen=True)
class ExecutionStep:
    step: int
    action: str                     # buy, bridge, sell
    venue: Optional[str]
    network: str
    amount: Decimal


@dataclass(frozen=True)
class ExecutionPlan:
    steps: Tuple[ExecutionStep, ...]
    gas_strategy: str
    slippage_tolerance: Decimal
    deadline_seconds: int
    expected_net_profit: Decimal


@dataclass(frozen=True)
class Alternative:
    type: AlternativeType
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FinalAssessment:
    composite_score: float
    components: ComponentScores
    is_executable: bool
    recommendation: Recommendation
    critical_factors: Tuple[CriticalFactor, ...]
    execution_plan: Optional[ExecutionPlan]
    alternatives: Tuple[Alternative, ...]


@dataclass(frozen=True)
class AnalysisBreakdown:
    """Every stage output of one successful analysis."""
    token: str
    cross_chain: bool
    spread: SpreadResult
    legs: Tuple[LegAnalysis, ...]
    gas: GasEstimate
    gas_strategy: Optional[GasStrategyPlan]
    profit: NetProfitAnalysis
    risk: RiskAssessment
    final: FinalAssessment

    @property
    def liquidity_valid(self) -> bool:
        return all(leg.validation.is_valid for leg in self.legs)


@dataclass(frozen=True)
class AnalysisFailure:
    stage: str
    kind: str
    message: str
    venue: Optional[str] = None


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of ``analyze_opportunity``: a breakdown on success, a failure record otherwise."""
    success: bool
    trade_amount: Decimal
    analysis: Optional[AnalysisBreakdown] = None
    error: Optional[AnalysisFailure] = None
    analysis_time_ms: float = 0.0
    data_timestamp: Optional[float] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def is_executable(self) -> bool:
        return self.success and self.analysis.final.is_executable

    @property
    def composite_score(self) -> float:
        return self.analysis.final.composite_score if self.success else 0.0


def max_leg_slippage(legs: Tuple[LegAnalysis, ...]) -> Decimal:
    return max((leg.validation.price_impact.slippage for leg in legs), default=Decimal("0"))


def min_leg_liquidity(legs: Tuple[LegAnalysis, ...]) -> Decimal:
    return min((leg.validation.metrics.total_liquidity_usd for leg in legs), default=Decimal("0"))


def component_scores(
    profit: NetProfitAnalysis,
    liquidity_valid: bool,
    risk: RiskAssessment,
    gas_strategy: Optional[GasStrategyPlan],
    weights: Optional[CompositeWeights] = None
) -> ComponentScores:
    weights = weights or CompositeWeights()
    recommended = gas_strategy is not None and gas_strategy.recommended is not None
    return ComponentScores(
        profit=clamp(float(profit.net_profit_percentage) / weights.profit_normalizer_pct, 0.0, 1.0),
        liquidity=1.0 if liquidity_valid else 0.0,
        risk=clamp(1.0 - risk.total_score, 0.0, 1.0),
        gas=weights.gas_recommended_score if recommended else weights.gas_default_score,
    )


def composite_score(components: ComponentScores, weights: Optional[CompositeWeights] = None) -> float:
    """0.4 profit + 0.3 liquidity + 0.2 (1 - risk) + 0.1 gas with the default weights."""
    weights = weights or CompositeWeights()
    score = (
        components.profit * weights.profit
        + components.liquidity * weights.liquidity
        + components.risk * weights.risk
        + components.gas * weights.gas
    )
    return round(score, 8)


def recommend(score: float, risk_level: RiskLevel) -> Recommendation:
    if score >= 0.8 and risk_level == RiskLevel.LOW:
        return Recommendation.EXECUTE_IMMEDIATELY
    if score >= 0.7 and risk_level != RiskLevel.CRITICAL:
        return Recommendation.EXECUTE_WITH_MONITORING
    if score >= 0.6:
        return Recommendation.EXECUTE_WITH_CAUTION
    return Recommendation.DO_NOT_EXECUTE


def identify_critical_factors(
    spread: SpreadResult,
    legs: Tuple[LegAnalysis, ...],
    gas: GasEstimate,
    profit: NetProfitAnalysis,
    risk: RiskAssessment,
    score: float,
    cross_chain: bool,
    config: AnalysisConfig
) -> Tuple[CriticalFactor, ...]:
    factors: List[CriticalFactor] = []

    if not profit.is_profitable:
        factors.append(CriticalFactor(
            "unprofitable", "HIGH",
            f"Net profit {profit.net_profit} after costs of {profit.total_costs}",
        ))

    for leg in legs:
        validation = leg.validation
        if not validation.price_impact.is_acceptable_impact:
            factors.append(CriticalFactor(
                "price_impact", "HIGH",
                f"{leg.side} leg on {leg.venue}: impact {validation.price_impact.price_impact_percentage:.3f}% "
                f"above {validation.price_impact.max_price_impact * 100:.2f}%",
            ))
        if validation.depth.category == DepthCategory.CRITICAL:
            factors.append(CriticalFactor(
                "pool_depth", "HIGH",
                f"{leg.side} leg on {leg.venue}: trade is {validation.depth.depth_ratio} of pool reserves",
            ))
        if not validation.risk.is_acceptable:
            factors.append(CriticalFactor(
                "liquidity_risk", "HIGH",
                f"{leg.side} leg on {leg.venue}: "
                + ", ".join(r.type.value for r in validation.risk.risks),
            ))

    if risk.level == RiskLevel.CRITICAL:
        factors.append(CriticalFactor("risk", "HIGH", f"Risk score {risk.total_score:.3f} is CRITICAL"))
    elif risk.level == RiskLevel.HIGH:
        factors.append(CriticalFactor("risk", "MEDIUM", f"Risk score {risk.total_score:.3f} is HIGH"))

    if gas.is_fallback:
        factors.append(CriticalFactor(
            "gas_estimate_unavailable", "MEDIUM",
            f"Gas estimator unavailable, assumed ${gas.total_cost_usd}",
        ))
    elif profit.gross_profit > 0 and gas.total_cost_usd > profit.gross_profit / 2:
        factors.append(CriticalFactor(
            "gas_cost", "MEDIUM",
            f"Gas ${gas.total_cost_usd} consumes over half of gross profit ${profit.gross_profit}",
        ))

    if not spread.is_valid:
        factors.append(CriticalFactor(
            "spread", "MEDIUM",
            f"Spread {spread.percentage}% below minimum {config.min_spread_percentage}%",
        ))

    if cross_chain:
        factors.append(CriticalFactor(
            "cross_chain", "LOW", f"Cross-chain route pays a ${config.bridge_fee_usd} bridge fee",
        ))

    if score < config.executable_score_threshold:
        factors.append(CriticalFactor(
            "composite_score", "MEDIUM",
            f"Composite score {score:.3f} below {config.executable_score_threshold}",
        ))

    return tuple(factors)


def build_execution_plan(
    token: str,
    trade_amount: Decimal,
    legs: Tuple[LegAnalysis, ...],
    networks: Tuple[str, str],
    cross_chain: bool,
    profit: NetProfitAnalysis,
    gas_strategy: Optional[GasStrategyPlan],
    max_execution_time_s: float
) -> ExecutionPlan:
    """Buy, optionally bridge, then sell; slippage tolerance is the worst leg's slippage plus half."""
    buy_network, sell_network = networks
    by_side = {leg.side: leg for leg in legs}
    buy_leg = by_side.get("buy")
    sell_leg = by_side.get("sell")

    steps = [ExecutionStep(1, "buy", buy_leg.venue if buy_leg else None, buy_network, trade_amount)]
    if cross_chain:
        steps.append(ExecutionStep(len(steps) + 1, "bridge", None, sell_network, trade_amount))
    steps.append(ExecutionStep(len(steps) + 1, "sell", sell_leg.venue if sell_leg else None, sell_network, trade_amount))

    strategy = gas_strategy.recommended if gas_strategy is not None else None
    tolerance = max(max_leg_slippage(legs) * Decimal("1.5"), Decimal("0.005"))

    return ExecutionPlan(
        steps=tuple(steps),
        gas_strategy=strategy.key if strategy is not None else "standard",
        slippage_tolerance=quantize(tolerance),
        deadline_seconds=int(max_execution_time_s),
        expected_net_profit=strategy.net_profit if strategy is not None else profit.net_profit,
    )


def suggest_alternatives(
    trade_amount: Decimal,
    legs: Tuple[LegAnalysis, ...],
    risk: RiskAssessment,
    gas_strategy: Optional[GasStrategyPlan],
    cross_chain: bool
) -> Tuple[Alternative, ...]:
    alternatives: List[Alternative] = []
    leg_hints = {rec.type for leg in legs for rec in leg.validation.recommendations}

    if RecommendationType.REDUCE_TRADE_SIZE in leg_hints:
        alternatives.append(Alternative(
            AlternativeType.REDUCE_TRADE_SIZE,
            "Halve the trade size to bring price impact down",
            {"trade_amount": quantize(trade_amount / 2)},
        ))

    if RecommendationType.SPLIT_TRADE in leg_hints:
        alternatives.append(Alternative(
            AlternativeType.SPLIT_TRADE,
            "Split the trade into several smaller transactions",
            {"parts": 3, "part_amount": quantize(trade_amount / 3)},
        ))

    if gas_strategy is not None and gas_strategy.recommended is not None:
        recommended = gas_strategy.recommended
        if recommended.key != "standard":
            alternatives.append(Alternative(
                AlternativeType.GAS_STRATEGY,
                f"Use {recommended.name} (gas ${recommended.gas_cost_usd})",
                {"strategy": recommended.key},
            ))

    congestion = risk.factors.get("congestion")
    gas_factor = risk.factors.get("gas")
    if (congestion is not None and congestion.score >= 0.5) or (gas_factor is not None and gas_factor.score >= 0.5):
        alternatives.append(Alternative(
            AlternativeType.WAIT_FOR_LOWER_CONGESTION,
            "Network congestion or gas price is elevated, wait for it to ease",
        ))

    if cross_chain:
        alternatives.append(Alternative(
            AlternativeType.SAME_CHAIN_ROUTE,
            "Look for the same spread on a single network to avoid bridge fee and latency",
        ))

    return tuple(alternatives)


def viability_tier(index: int) -> ViabilityTier:
    """Tier of the ``index``-th (0-based) opportunity in score order."""
    if index < 3:
        return ViabilityTier.PREMIUM
    if index < 7:
        return ViabilityTier.GOOD
    return ViabilityTier.ACCEPTABLE


@dataclass(frozen=True)
class RankedOpportunity:
    opportunity: Opportunity
    result: AnalysisResult
    rank: int
    tier: ViabilityTier

    @property
    def recommendation(self) -> Recommendation:
        return self.result.analysis.final.recommendation


@dataclass(frozen=True)
class BatchAnalysis:
    """Outcome of ``scan_and_analyze``."""
    scan_summary: MultiScanResult
    analyzed: int
    ranked: Tuple[RankedOpportunity, ...]
    recommendations: Dict[str, Any]
    errors: Dict[str, str]
    analysis_time_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ScenarioOutcome:
    name: str
    scenario: Scenario
    result: AnalysisResult
    viable: bool


@dataclass(frozen=True)
class ScenarioSimulation:
    """Outcome of ``simulate_scenarios``."""
    base: OpportunityRequest
    outcomes: Tuple[ScenarioOutcome, ...]
    best_scenario: Optional[ScenarioOutcome]
    risk_analysis: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)
