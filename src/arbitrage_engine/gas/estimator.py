"""Gas and execution cost estimation."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..core.precision import ZERO, quantize, to_decimal
from ..exceptions import InvalidInput

logger = logging.getLogger(__name__)

# Share of the gas limit a transaction typically consumes
GAS_USAGE_RATIO = Decimal("0.8")

GWEI = Decimal("1e-9")


@dataclass(frozen=True)
class NetworkGasConfig:
    chain_id: int
    gas_limits: Dict[str, int]
    base_fee_gwei: Decimal
    priority_fee_gwei: Decimal
    native_token_usd: Decimal
    base_confirmation_s: int


NETWORK_CONFIGS: Dict[str, NetworkGasConfig] = {
    "ethereum": NetworkGasConfig(
        chain_id=1,
        gas_limits={"transfer": 21000, "swap": 150000, "flashloan": 300000,
                    "arbitrage": 450000, "complex": 800000},
        base_fee_gwei=Decimal("20"),
        priority_fee_gwei=Decimal("2"),
        native_token_usd=Decimal("2500"),
        base_confirmation_s=60,
    ),
    "polygon": NetworkGasConfig(
        chain_id=137,
        gas_limits={"transfer": 21000, "swap": 120000, "flashloan": 250000,
                    "arbitrage": 350000, "complex": 600000},
        base_fee_gwei=Decimal("30"),
        priority_fee_gwei=Decimal("30"),
        native_token_usd=Decimal("0.8"),
        base_confirmation_s=10,
    ),
    "bsc": NetworkGasConfig(
        chain_id=56,
        gas_limits={"transfer": 21000, "swap": 100000, "flashloan": 200000,
                    "arbitrage": 300000, "complex": 500000},
        base_fee_gwei=Decimal("3"),
        priority_fee_gwei=Decimal("1"),
        native_token_usd=Decimal("300"),
        base_confirmation_s=10,
    ),
    "arbitrum": NetworkGasConfig(
        chain_id=42161,
        gas_limits={"transfer": 21000, "swap": 180000, "flashloan": 400000,
                    "arbitrage": 600000, "complex": 1000000},
        base_fee_gwei=Decimal("0.1"),
        priority_fee_gwei=Decimal("0.01"),
        native_token_usd=Decimal("2500"),
        base_confirmation_s=10,
    ),
}

OPTIMIZATION_FACTORS: Dict[str, Decimal] = {
    "batch_transactions": Decimal("0.7"),
    "gas_tokens": Decimal("0.85"),
    "flash_loans": Decimal("1.2"),
    "cross_chain": Decimal("1.5"),
    "high_congestion": Decimal("2.0"),
}


class GasOperation(BaseModel):
    """One on-chain step of an arbitrage."""
    model_config = ConfigDict(frozen=True)

    network: str
    op_type: str = "swap"
    complexity_factor: float = Field(1.0, gt=0)
    gas_price_gwei: Optional[Decimal] = Field(None, gt=0)
    optimizations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OperationCost:
    step: int
    network: str
    op_type: str
    gas_used: int
    gas_price_gwei: Decimal
    cost_usd: Decimal
    confirmation_time_s: int


@dataclass(frozen=True)
class GasEstimate:
    """Cost and latency of executing a list of operations."""
    total_cost_usd: Decimal
    max_confirmation_time_s: int
    total_gas_used: int
    max_gas_price_gwei: Decimal
    operations: Tuple[OperationCost, ...] = ()
    risk_level: str = "LOW"
    risk_factors: Tuple[str, ...] = ()
    is_fallback: bool = False


@dataclass(frozen=True)
class GasStrategy:
    key: str
    name: str
    gas_cost_usd: Decimal
    time_to_execute_s: Decimal
    success_rate: float
    modifications: Tuple[str, ...]
    net_profit: Decimal
    profit_ratio: Decimal
    composite_score: float
    is_viable: bool


@dataclass(frozen=True)
class GasStrategyPlan:
    base: GasEstimate
    strategies: Dict[str, GasStrategy]
    recommended: Optional[GasStrategy]
    optimization_opportunities: Tuple[str, ...] = field(default_factory=tuple)


class GasEstimator(ABC):
    """External collaborator estimating gas costs and execution strategies."""

    @abstractmethod
    async def estimate(self, operations: Sequence[GasOperation]) -> GasEstimate:
        """Total cost in USD and the slowest confirmation time."""

    @abstractmethod
    async def optimize_strategy(
        self,
        expected_profit: Decimal,
        operations: Sequence[GasOperation],
        max_time_s: float = 300.0
    ) -> GasStrategyPlan:
        """Pick the best execution strategy for the expected profit."""


class NetworkGasEstimator(GasEstimator):
    """
    Deterministic gas model from per-network gas limits and fee levels.

    Gas price defaults to base fee + priority fee of the network unless the
    operation carries its own quote.
    """

    def __init__(self, network_configs: Optional[Dict[str, NetworkGasConfig]] = None):
        self.network_configs = network_configs or NETWORK_CONFIGS
        self._stats = {"estimates": 0, "strategy_optimizations": 0}

    def _config_for(self, operation: GasOperation) -> NetworkGasConfig:
        config = self.network_configs.get(operation.network)
        if config is None:
            raise InvalidInput(f"Unsupported network: {operation.network}", stage="gas")
        if operation.op_type not in config.gas_limits:
            raise InvalidInput(
                f"Unsupported operation type '{operation.op_type}' on {operation.network}",
                stage="gas",
            )
        return config

    def operation_cost(self, operation: GasOperation, step: int = 1) -> OperationCost:
        config = self._config_for(operation)
        gas_price = operation.gas_price_gwei or (config.base_fee_gwei + config.priority_fee_gwei)

        gas_limit = Decimal(config.gas_limits[operation.op_type]) * to_decimal(operation.complexity_factor)
        gas_used = gas_limit * GAS_USAGE_RATIO
        cost_native = gas_used * gas_price * GWEI
        cost_usd = cost_native * config.native_token_usd

        for optimization in operation.optimizations:
            factor = OPTIMIZATION_FACTORS.get(optimization)
            if factor is None:
                logger.warning(f"Ignoring unknown gas optimization '{optimization}'")
                continue
            cost_usd *= factor

        price_ratio = max(gas_price / config.base_fee_gwei, Decimal("0.5"))
        confirmation = int((Decimal(config.base_confirmation_s) / price_ratio).to_integral_value())

        return OperationCost(
            step=step,
            network=operation.network,
            op_type=operation.op_type,
            gas_used=int(gas_used.to_integral_value()),
            gas_price_gwei=gas_price,
            cost_usd=quantize(cost_usd),
            confirmation_time_s=confirmation,
        )

    async def estimate(self, operations: Sequence[GasOperation]) -> GasEstimate:
        self._stats["estimates"] += 1
        costs = [self.operation_cost(op, step=i + 1) for i, op in enumerate(operations)]

        total = sum((c.cost_usd for c in costs), ZERO)
        max_time = max((c.confirmation_time_s for c in costs), default=0)
        max_price = max((c.gas_price_gwei for c in costs), default=ZERO)

        risk_factors = []
        if total > 100:
            risk_factors.append("HIGH_COST")
        if max_time > 300:
            risk_factors.append("SLOW_EXECUTION")

        return GasEstimate(
            total_cost_usd=quantize(total),
            max_confirmation_time_s=max_time,
            total_gas_used=sum(c.gas_used for c in costs),
            max_gas_price_gwei=max_price,
            operations=tuple(costs),
            risk_level="HIGH" if risk_factors else "LOW",
            risk_factors=tuple(risk_factors),
        )

    async def optimize_strategy(
        self,
        expected_profit: Decimal,
        operations: Sequence[GasOperation],
        max_time_s: float = 300.0
    ) -> GasStrategyPlan:
        self._stats["strategy_optimizations"] += 1
        base = await self.estimate(operations)
        profit = to_decimal(expected_profit, "expected_profit")
        max_time = to_decimal(max_time_s, "max_time_s")
        base_cost = base.total_cost_usd
        base_time = Decimal(base.max_confirmation_time_s)

        candidates = [
            ("standard", "Standard Execution", base_cost, base_time, 0.85, ()),
            ("batch", "Batch Transactions",
             base_cost * OPTIMIZATION_FACTORS["batch_transactions"], base_time * Decimal("1.1"),
             0.90, ("batch_operations",)),
            ("high_priority", "High Priority Gas",
             base_cost * Decimal("1.5"), base_time * Decimal("0.3"), 0.95, ("priority_gas",)),
            ("flashloan", "Flash Loan Optimization",
             base_cost * OPTIMIZATION_FACTORS["flash_loans"] * Decimal("0.9"), base_time * Decimal("0.8"),
             0.88, ("flash_loans", "reduced_steps")),
        ]

        strategies: Dict[str, GasStrategy] = {}
        recommended: Optional[GasStrategy] = None
        for key, name, cost, exec_time, success_rate, modifications in candidates:
            net = profit - cost
            profit_ratio = net / profit if profit > 0 else ZERO
            time_score = self._time_score(exec_time, max_time)
            composite = float(profit_ratio) * success_rate * time_score
            strategy = GasStrategy(
                key=key,
                name=name,
                gas_cost_usd=quantize(cost),
                time_to_execute_s=quantize(exec_time),
                success_rate=success_rate,
                modifications=modifications,
                net_profit=quantize(net),
                profit_ratio=quantize(profit_ratio),
                composite_score=composite,
                is_viable=net > 0 and exec_time <= max_time,
            )
            strategies[key] = strategy
            if strategy.is_viable and (recommended is None or composite > recommended.composite_score):
                recommended = strategy

        opportunities = []
        if base_cost > 50:
            opportunities.append("BATCH_OPERATIONS")
        if base.max_confirmation_time_s > 120:
            opportunities.append("PRIORITY_GAS")

        return GasStrategyPlan(
            base=base,
            strategies=strategies,
            recommended=recommended,
            optimization_opportunities=tuple(opportunities),
        )

    @staticmethod
    def _time_score(exec_time: Decimal, max_time: Decimal) -> float:
        if max_time <= 0 or exec_time > max_time:
            return 0.0
        return float(1 - exec_time / max_time)

    def get_estimator_stats(self) -> Dict:
        return {
            "supported_networks": sorted(self.network_configs.keys()),
            **self._stats,
        }


def default_operations(networks: List[str], cross_chain: bool = False) -> List[GasOperation]:
    """One swap per leg; a cross-chain route pays the cross-chain overhead on each leg."""
    optimizations = ("cross_chain",) if cross_chain else ()
    return [GasOperation(network=network, op_type="swap", optimizations=optimizations)
            for network in networks]
