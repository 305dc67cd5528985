"""Spread and net-profit calculations for two-venue arbitrage."""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .models import CostBreakdown, NetProfitAnalysis, SpreadResult, TradeDirection
from .precision import (
    HUNDRED,
    ONE,
    ZERO,
    Number,
    clamp,
    quantize,
    require_non_negative,
    require_positive,
    safe_divide,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionCosts:
    """Cost inputs for a net-profit calculation."""
    gas_fee: Decimal = Decimal("0")
    protocol_fee_rate: Decimal = Decimal("0.003")
    slippage_rate: Decimal = Decimal("0")
    bridge_fee: Decimal = Decimal("0")


class SpreadCalculator:
    """
    Computes price spreads between venues and the net profit of acting on them.

    All arithmetic is Decimal; reported values are rounded to 8 places.
    """

    def __init__(self, min_spread_percentage: Number = Decimal("0.1")):
        """
        Initialize the calculator.

        Args:
            min_spread_percentage: Smallest relative spread (in percent) that
                counts as a valid spread
        """
        self.min_spread_percentage = require_non_negative(
            min_spread_percentage, "min_spread_percentage"
        )

    def spread(self, price_a: Number, price_b: Number) -> SpreadResult:
        """
        Compare the price of one asset on venue A and venue B.

        The relative spread is measured against the lower price, so swapping
        the arguments only flips the direction.

        Raises:
            InvalidInput: if either price is not positive
        """
        a = require_positive(price_a, "price_a", stage="spread")
        b = require_positive(price_b, "price_b", stage="spread")

        higher = max(a, b)
        lower = min(a, b)
        absolute = higher - lower
        relative = absolute / lower
        percentage = relative * HUNDRED

        # Buy where it is cheaper
        direction = TradeDirection.A_TO_B if a <= b else TradeDirection.B_TO_A

        return SpreadResult(
            absolute=quantize(absolute),
            relative=quantize(relative),
            percentage=quantize(percentage),
            higher_price=higher,
            lower_price=lower,
            direction=direction,
            is_valid=percentage >= self.min_spread_percentage,
        )

    def net_profit(
        self,
        buy_price: Number,
        sell_price: Number,
        amount: Number,
        costs: Optional[ExecutionCosts] = None
    ) -> NetProfitAnalysis:
        """
        Profit of buying ``amount`` at ``buy_price`` and selling at ``sell_price``.

        Costs: gas + protocol_fee_rate * amount + slippage_rate * amount + bridge.

        Raises:
            InvalidInput: on non-positive prices or amount, or negative costs
        """
        buy = require_positive(buy_price, "buy_price", stage="net_profit")
        sell = require_positive(sell_price, "sell_price", stage="net_profit")
        size = require_positive(amount, "amount", stage="net_profit")
        costs = costs or ExecutionCosts()

        gas = require_non_negative(costs.gas_fee, "gas_fee", stage="net_profit")
        fee_rate = require_non_negative(costs.protocol_fee_rate, "protocol_fee_rate", stage="net_profit")
        slippage_rate = require_non_negative(costs.slippage_rate, "slippage_rate", stage="net_profit")
        bridge = require_non_negative(costs.bridge_fee, "bridge_fee", stage="net_profit")

        gross = (sell - buy) * size
        investment = buy * size

        breakdown = CostBreakdown(
            gas=quantize(gas),
            protocol_fee=quantize(fee_rate * size),
            slippage=quantize(slippage_rate * size),
            bridge_fee=quantize(bridge),
        )
        total_costs = breakdown.total
        net = gross - total_costs

        net_pct = net / investment * HUNDRED
        gross_pct = gross / investment * HUNDRED

        if gross > 0:
            efficiency = float(clamp(ONE - total_costs / gross, ZERO, ONE))
        else:
            efficiency = 0.0

        profit_component = clamp(float(net_pct) / 10.0, 0.0, 1.0)
        profitability_score = (profit_component + efficiency) / 2.0

        logger.debug(
            f"Net profit: gross={gross} costs={total_costs} net={net} ({net_pct:.4f}%)"
        )

        return NetProfitAnalysis(
            gross_profit=quantize(gross),
            gross_profit_percentage=quantize(gross_pct),
            costs=breakdown,
            net_profit=quantize(net),
            net_profit_percentage=quantize(net_pct),
            roi=quantize(net_pct),
            investment=quantize(investment),
            cost_ratio=quantize(safe_divide(total_costs, gross)) if gross > 0 else ZERO,
            efficiency=efficiency,
            is_profitable=net > 0,
            profitability_score=profitability_score,
        )


def calculate_spread(price_a: Number, price_b: Number,
                     min_spread_percentage: Number = Decimal("0.1")) -> SpreadResult:
    """Convenience wrapper around ``SpreadCalculator.spread``."""
    return SpreadCalculator(min_spread_percentage).spread(price_a, price_b)


def calculate_net_profit(buy_price: Number, sell_price: Number, amount: Number,
                         costs: Optional[ExecutionCosts] = None) -> NetProfitAnalysis:
    """Convenience wrapper around ``SpreadCalculator.net_profit``."""
    return SpreadCalculator().net_profit(buy_price, sell_price, amount, costs)


__all__ = [
    "ExecutionCosts",
    "SpreadCalculator",
    "calculate_spread",
    "calculate_net_profit",
]
