"""
Composite execution risk scoring.

Six independently normalized factors, each clamped to [0, 1], are combined
with fixed weights into a total score that maps onto a risk level and a
recommended action.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from ..config.analysis_config import RiskConfig
from ..core.precision import clamp, quantize, to_decimal
from ..exceptions import InvalidInput

logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    """Risk levels by total score."""
    LOW = "LOW"            # <= 0.3
    MEDIUM = "MEDIUM"      # <= 0.5
    HIGH = "HIGH"          # <= 0.7
    CRITICAL = "CRITICAL"  # > 0.7


class RiskAction(str, Enum):
    EXECUTE = "EXECUTE"
    EXECUTE_WITH_CAUTION = "EXECUTE_WITH_CAUTION"
    MONITOR = "MONITOR"
    AVOID = "AVOID"


RISK_MULTIPLIERS: Dict[RiskLevel, float] = {
    RiskLevel.LOW: 0.5,
    RiskLevel.MEDIUM: 1.0,
    RiskLevel.HIGH: 2.0,
    RiskLevel.CRITICAL: 5.0,
}

RISK_ACTIONS: Dict[RiskLevel, RiskAction] = {
    RiskLevel.LOW: RiskAction.EXECUTE,
    RiskLevel.MEDIUM: RiskAction.EXECUTE_WITH_CAUTION,
    RiskLevel.HIGH: RiskAction.MONITOR,
    RiskLevel.CRITICAL: RiskAction.AVOID,
}


@dataclass(frozen=True)
class RiskInputs:
    """Market and execution measurements for one opportunity."""
    volatility: float = 0.02
    liquidity_usd: float = 0.0
    slippage: float = 0.0
    execution_time_ms: float = 0.0
    gas_price_gwei: float = 20.0
    congestion: float = 30.0


@dataclass(frozen=True)
class RiskFactor:
    score: float
    weight: float
    weighted: float


@dataclass(frozen=True)
class RiskAssessment:
    """Result of scoring one opportunity."""
    factors: Dict[str, RiskFactor]
    total_score: float
    level: RiskLevel
    multiplier: float
    is_acceptable: bool
    recommended_action: RiskAction
    inputs: RiskInputs = field(default_factory=RiskInputs)


class RiskScorer:
    """Weighted six-factor risk scorer."""

    def __init__(self, config: Optional[RiskConfig] = None):
        self.config = config or RiskConfig()
        self._stats = {
            "assessments": 0,
            "level_distribution": {level.value: 0 for level in RiskLevel},
        }

    def score(self, inputs: RiskInputs, config: Optional[RiskConfig] = None) -> RiskAssessment:
        """
        Score an opportunity.

        Raises:
            InvalidInput: if any measurement is negative or not a number
        """
        cfg = config or self.config
        self._check_inputs(inputs)

        raw = {
            "volatility": inputs.volatility / cfg.volatility_scale,
            "liquidity": 1.0 - inputs.liquidity_usd / cfg.liquidity_reference_usd,
            "slippage": inputs.slippage / cfg.slippage_scale,
            "time": inputs.execution_time_ms / cfg.time_scale_ms,
            "gas": inputs.gas_price_gwei / (cfg.gas_multiple * cfg.gas_baseline_gwei),
            "congestion": inputs.congestion / cfg.congestion_scale,
        }

        factors: Dict[str, RiskFactor] = {}
        total = Decimal("0")
        for name, value in raw.items():
            score = clamp(value, 0.0, 1.0)
            weight = cfg.weights[name]
            weighted = to_decimal(score) * to_decimal(weight)
            total += weighted
            factors[name] = RiskFactor(score=score, weight=weight, weighted=float(quantize(weighted)))

        total = clamp(quantize(total), Decimal("0"), Decimal("1"))
        level = self.classify(total, cfg)

        self._stats["assessments"] += 1
        self._stats["level_distribution"][level.value] += 1

        return RiskAssessment(
            factors=factors,
            total_score=float(total),
            level=level,
            multiplier=RISK_MULTIPLIERS[level],
            is_acceptable=total <= to_decimal(cfg.acceptable_threshold),
            recommended_action=RISK_ACTIONS[level],
            inputs=inputs,
        )

    @staticmethod
    def classify(total_score, config: Optional[RiskConfig] = None) -> RiskLevel:
        """Map a total score onto a level; each threshold is inclusive."""
        cfg = config or RiskConfig()
        total = to_decimal(total_score, "total_score")
        if total <= to_decimal(cfg.low_threshold):
            return RiskLevel.LOW
        if total <= to_decimal(cfg.medium_threshold):
            return RiskLevel.MEDIUM
        if total <= to_decimal(cfg.high_threshold):
            return RiskLevel.HIGH
        return RiskLevel.CRITICAL

    @staticmethod
    def _check_inputs(inputs: RiskInputs) -> None:
        for name in ("volatility", "liquidity_usd", "slippage", "execution_time_ms",
                     "gas_price_gwei", "congestion"):
            value = to_decimal(getattr(inputs, name), name)
            if value < 0:
                raise InvalidInput(f"{name} must not be negative, got {value}", stage="risk")

    def get_scorer_stats(self) -> Dict:
        return {
            "weights": dict(self.config.weights),
            **self._stats,
        }
