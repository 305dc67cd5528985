"""
Constant product (x * y = k) price-impact model.

Covers Uniswap V2 and its forks (SushiSwap, PancakeSwap, QuickSwap, ...).
The fee is taken from the input before it reaches the curve, so the
invariant k is exactly preserved on the fee-adjusted reserves.
"""
import logging
from decimal import Decimal, localcontext

from ..core.models import PoolFamily, PoolState
from ..core.precision import HIGH_PRECISION, ONE, Number, require_positive
from ..exceptions import LiquidityInsufficient
from .base import PriceImpactModel, SwapSimulation, register_model

logger = logging.getLogger(__name__)


@register_model
class ConstantProductModel(PriceImpactModel):
    """Uniswap V2 style pricing."""

    family = PoolFamily.CONSTANT_PRODUCT

    def spot_price(self, pool: PoolState) -> Decimal:
        """Output per input at the current reserves, before fees."""
        return pool.reserve_out / pool.reserve_in

    def _simulate(self, pool: PoolState, amount_after_fee: Decimal) -> SwapSimulation:
        k = pool.reserve_in * pool.reserve_out
        new_reserve_in = pool.reserve_in + amount_after_fee
        new_reserve_out = k / new_reserve_in
        amount_out = pool.reserve_out - new_reserve_out

        return SwapSimulation(
            amount_out=amount_out,
            spot_before=self.spot_price(pool),
            spot_after=new_reserve_out / new_reserve_in,
            reserve_in_after=new_reserve_in,
            reserve_out_after=new_reserve_out,
        )

    def amount_in_for_output(self, pool: PoolState, amount_out: Number) -> Decimal:
        """
        Gross input needed to receive ``amount_out``.

        Formula: amountIn = reserveIn * amountOut / ((reserveOut - amountOut) * (1 - fee))

        Raises:
            LiquidityInsufficient: if the pool cannot pay out that much
        """
        pool.check_state()
        wanted = require_positive(amount_out, "amount_out", stage="price_impact")
        if wanted >= pool.reserve_out:
            raise LiquidityInsufficient(
                f"Requested output {wanted} drains reserve {pool.reserve_out}",
                stage="price_impact",
                venue=pool.venue,
            )

        with localcontext() as ctx:
            ctx.prec = HIGH_PRECISION
            return pool.reserve_in * wanted / ((pool.reserve_out - wanted) * (ONE - pool.fee_rate))
