"""Pool liquidity validation on top of the AMM price-impact models."""
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..amm import get_model
from ..config.analysis_config import LiquidityConfig
from ..core.models import PoolState, PriceImpactResult
from ..core.precision import Number, quantize, require_positive, safe_divide
from ..exceptions import InvalidInput, LiquidityInsufficient

logger = logging.getLogger(__name__)


class DepthCategory(str, Enum):
    """Trade size relative to total pool reserves."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class LiquidityRiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskType(str, Enum):
    INSUFFICIENT_LIQUIDITY = "INSUFFICIENT_LIQUIDITY"
    BELOW_PROTOCOL_MINIMUM = "BELOW_PROTOCOL_MINIMUM"
    LOW_UTILIZATION = "LOW_UTILIZATION"


class RecommendationType(str, Enum):
    REDUCE_TRADE_SIZE = "REDUCE_TRADE_SIZE"
    SPLIT_TRADE = "SPLIT_TRADE"
    AVOID_TRADE = "AVOID_TRADE"


# Fixed contribution of each risk to the liquidity risk score
RISK_SCORES: Dict[RiskType, Decimal] = {
    RiskType.INSUFFICIENT_LIQUIDITY: Decimal("0.8"),
    RiskType.BELOW_PROTOCOL_MINIMUM: Decimal("0.8"),
    RiskType.LOW_UTILIZATION: Decimal("0.3"),
}


@dataclass(frozen=True)
class LiquidityMetrics:
    total_liquidity_usd: Decimal
    volume_24h: Decimal
    volume_to_liquidity_ratio: Decimal
    utilization: Decimal
    is_liquidity_adequate: bool


@dataclass(frozen=True)
class ProtocolCheck:
    family: str
    min_liquidity_usd: Decimal
    liquidity_check: bool
    trade_ratio: Decimal
    is_valid: bool


@dataclass(frozen=True)
class DepthAnalysis:
    total_reserve: Decimal
    trade_amount: Decimal
    depth_ratio: Decimal
    category: DepthCategory
    hints: Tuple[str, ...]


@dataclass(frozen=True)
class LiquidityRisk:
    type: RiskType
    score: Decimal
    description: str


@dataclass(frozen=True)
class LiquidityRiskAssessment:
    risks: Tuple[LiquidityRisk, ...]
    total_score: Decimal
    level: LiquidityRiskLevel

    @property
    def is_acceptable(self) -> bool:
        return self.level != LiquidityRiskLevel.HIGH


@dataclass(frozen=True)
class TradeRecommendation:
    type: RecommendationType
    priority: str
    suggestion: str


@dataclass(frozen=True)
class LiquidityValidationResult:
    """Everything the validator learned about one pool and trade size."""
    venue: str
    is_valid: bool
    metrics: LiquidityMetrics
    protocol_check: ProtocolCheck
    price_impact: PriceImpactResult
    depth: DepthAnalysis
    risk: LiquidityRiskAssessment
    recommendations: Tuple[TradeRecommendation, ...]
    timestamp: float = field(default_factory=time.time)

    def ensure_valid(self) -> "LiquidityValidationResult":
        """Raise ``LiquidityInsufficient`` if the pool cannot take the trade."""
        if not self.is_valid:
            reasons = [r.type.value for r in self.recommendations] or [self.depth.category.value]
            raise LiquidityInsufficient(
                f"Pool cannot absorb trade of {self.depth.trade_amount}: {', '.join(reasons)}",
                stage="liquidity",
                venue=self.venue,
                details={"depth_ratio": str(self.depth.depth_ratio), "risk": self.risk.level.value},
            )
        return self


class LiquidityValidator:
    """
    Validates that a pool can absorb a trade.

    Combines the family's price-impact model with liquidity metrics, a
    per-family minimum liquidity gate, a depth classification and a
    liquidity risk list. A pool is valid when the impact is acceptable,
    depth is not CRITICAL and liquidity risk is not HIGH.
    """

    def __init__(self, config: Optional[LiquidityConfig] = None):
        self.config = config or LiquidityConfig()
        self._stats = {
            "validations": 0,
            "valid": 0,
            "invalid": 0,
        }

    def validate(
        self,
        pool: PoolState,
        trade_amount: Number,
        trade_value_usd: Optional[Number] = None,
        config: Optional[LiquidityConfig] = None
    ) -> LiquidityValidationResult:
        """
        Validate one pool for a trade of ``trade_amount`` input tokens.

        Args:
            pool: Pool snapshot oriented input -> output
            trade_amount: Input token amount
            trade_value_usd: Notional in USD for size limits and the protocol
                gate; defaults to ``trade_amount``
            config: Per-call limits overriding the validator's own

        Raises:
            InvalidInput: if the trade is outside the allowed size range
            PoolStateInvalid: if the pool state cannot be priced
        """
        cfg = config or self.config
        amount = require_positive(trade_amount, "trade_amount", stage="liquidity")
        notional = (require_positive(trade_value_usd, "trade_value_usd", stage="liquidity")
                    if trade_value_usd is not None else amount)
        self._check_trade_size(notional, cfg, pool.venue)

        self._stats["validations"] += 1

        impact = get_model(pool.family).price_impact(pool, amount, cfg.max_price_impact)
        metrics = self._liquidity_metrics(pool, cfg)
        protocol_check = self._protocol_check(pool, notional, cfg)
        depth = self._depth_analysis(pool, amount, cfg)
        risk = self._assess_risks(metrics, protocol_check, cfg)
        recommendations = self._recommendations(impact, depth, risk, cfg)

        is_valid = (
            impact.is_acceptable_impact
            and depth.category != DepthCategory.CRITICAL
            and risk.is_acceptable
        )

        if is_valid:
            self._stats["valid"] += 1
        else:
            self._stats["invalid"] += 1
            logger.info(
                f"Pool {pool.venue} rejected for {amount}: impact={impact.price_impact_percentage:.3f}% "
                f"depth={depth.category.value} risk={risk.level.value}"
            )

        return LiquidityValidationResult(
            venue=pool.venue,
            is_valid=is_valid,
            metrics=metrics,
            protocol_check=protocol_check,
            price_impact=impact,
            depth=depth,
            risk=risk,
            recommendations=recommendations,
        )

    def _check_trade_size(self, notional: Decimal, cfg: LiquidityConfig, venue: str) -> None:
        if notional < cfg.min_trade_size:
            raise InvalidInput(
                f"Trade size {notional} below minimum {cfg.min_trade_size}",
                stage="liquidity", venue=venue,
            )
        if notional > cfg.max_trade_size:
            raise InvalidInput(
                f"Trade size {notional} above maximum {cfg.max_trade_size}",
                stage="liquidity", venue=venue,
            )

    def _liquidity_metrics(self, pool: PoolState, cfg: LiquidityConfig) -> LiquidityMetrics:
        total = pool.total_liquidity_usd
        ratio = safe_divide(pool.volume_24h, total) if pool.volume_24h > 0 else Decimal("0")
        return LiquidityMetrics(
            total_liquidity_usd=quantize(total),
            volume_24h=pool.volume_24h,
            volume_to_liquidity_ratio=quantize(ratio),
            utilization=quantize(min(ratio, Decimal("1"))),
            is_liquidity_adequate=total >= cfg.min_liquidity_usd,
        )

    def _protocol_check(self, pool: PoolState, notional: Decimal, cfg: LiquidityConfig) -> ProtocolCheck:
        floor = cfg.protocol_min_liquidity.get(pool.family.value, cfg.min_liquidity_usd)
        reserve_usd = pool.input_reserve_usd
        trade_ratio = safe_divide(notional, reserve_usd, default=Decimal("Infinity"))
        liquidity_check = reserve_usd >= floor
        return ProtocolCheck(
            family=pool.family.value,
            min_liquidity_usd=floor,
            liquidity_check=liquidity_check,
            trade_ratio=quantize(trade_ratio) if trade_ratio.is_finite() else trade_ratio,
            is_valid=liquidity_check and trade_ratio <= cfg.max_trade_to_reserve_ratio,
        )

    def _depth_analysis(self, pool: PoolState, amount: Decimal, cfg: LiquidityConfig) -> DepthAnalysis:
        total_reserve = pool.reserve_in + pool.reserve_out
        ratio = amount / total_reserve
        category = self.categorize_depth(ratio, cfg)

        if ratio > cfg.depth_high:
            hints = ("Reduce trade size significantly", "Look for alternative pools")
        elif ratio > cfg.depth_medium:
            hints = ("Reduce trade size", "Monitor slippage")
        else:
            hints = ("Trade size acceptable",)

        return DepthAnalysis(
            total_reserve=total_reserve,
            trade_amount=amount,
            depth_ratio=quantize(ratio),
            category=category,
            hints=hints,
        )

    @staticmethod
    def categorize_depth(ratio: Decimal, cfg: Optional[LiquidityConfig] = None) -> DepthCategory:
        cfg = cfg or LiquidityConfig()
        if ratio <= cfg.depth_low:
            return DepthCategory.LOW
        if ratio <= cfg.depth_medium:
            return DepthCategory.MEDIUM
        if ratio <= cfg.depth_high:
            return DepthCategory.HIGH
        return DepthCategory.CRITICAL

    def _assess_risks(
        self,
        metrics: LiquidityMetrics,
        protocol_check: ProtocolCheck,
        cfg: LiquidityConfig
    ) -> LiquidityRiskAssessment:
        risks: List[LiquidityRisk] = []

        if not metrics.is_liquidity_adequate:
            risks.append(LiquidityRisk(
                RiskType.INSUFFICIENT_LIQUIDITY,
                RISK_SCORES[RiskType.INSUFFICIENT_LIQUIDITY],
                f"Liquidity ${metrics.total_liquidity_usd} below ${cfg.min_liquidity_usd}",
            ))

        if not protocol_check.is_valid:
            risks.append(LiquidityRisk(
                RiskType.BELOW_PROTOCOL_MINIMUM,
                RISK_SCORES[RiskType.BELOW_PROTOCOL_MINIMUM],
                f"{protocol_check.family} pool below ${protocol_check.min_liquidity_usd} "
                f"or trade ratio {protocol_check.trade_ratio} above {cfg.max_trade_to_reserve_ratio}",
            ))

        if metrics.utilization < cfg.low_utilization_threshold:
            risks.append(LiquidityRisk(
                RiskType.LOW_UTILIZATION,
                RISK_SCORES[RiskType.LOW_UTILIZATION],
                f"Pool utilization {metrics.utilization} is low",
            ))

        total = sum((r.score for r in risks), Decimal("0"))
        if total <= Decimal("0.3"):
            level = LiquidityRiskLevel.LOW
        elif total <= Decimal("0.7"):
            level = LiquidityRiskLevel.MEDIUM
        else:
            level = LiquidityRiskLevel.HIGH

        return LiquidityRiskAssessment(risks=tuple(risks), total_score=total, level=level)

    def _recommendations(
        self,
        impact: PriceImpactResult,
        depth: DepthAnalysis,
        risk: LiquidityRiskAssessment,
        cfg: LiquidityConfig
    ) -> Tuple[TradeRecommendation, ...]:
        recommendations: List[TradeRecommendation] = []

        if impact.price_impact_percentage > cfg.reduce_size_impact_pct or depth.category == DepthCategory.CRITICAL:
            recommendations.append(TradeRecommendation(
                RecommendationType.REDUCE_TRADE_SIZE,
                "HIGH",
                f"Reduce trade size. Current impact: {impact.price_impact_percentage:.2f}%, "
                f"depth {depth.category.value}",
            ))

        if depth.category == DepthCategory.HIGH:
            recommendations.append(TradeRecommendation(
                RecommendationType.SPLIT_TRADE,
                "MEDIUM",
                "Consider splitting the trade into several transactions",
            ))

        if risk.level == LiquidityRiskLevel.HIGH:
            recommendations.append(TradeRecommendation(
                RecommendationType.AVOID_TRADE,
                "HIGH",
                "Trade not recommended due to high liquidity risk",
            ))

        return tuple(recommendations)

    def get_validator_stats(self) -> Dict[str, Any]:
        return {
            "supported_families": sorted(self.config.protocol_min_liquidity.keys()),
            "limits": {
                "max_price_impact": str(self.config.max_price_impact),
                "min_liquidity_usd": str(self.config.min_liquidity_usd),
                "max_slippage": str(self.config.max_slippage),
                "min_trade_size": str(self.config.min_trade_size),
                "max_trade_size": str(self.config.max_trade_size),
            },
            **self._stats,
        }
