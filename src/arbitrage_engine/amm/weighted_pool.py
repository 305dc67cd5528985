"""
Balancer weighted pool price-impact model.

Invariant: V = B_in^W_in * B_out^W_out (constant).
Out given in: A_out = B_out * (1 - (B_in / (B_in + A_in))^(W_in / W_out)).
"""
from decimal import Decimal

from ..core.models import PoolFamily, PoolState
from ..core.precision import ONE
from .base import PriceImpactModel, SwapSimulation, register_model


def weighted_pow(base: Decimal, exponent: Decimal) -> Decimal:
    """base ** exponent, via exp(exponent * ln(base)) for fractional exponents."""
    if exponent == 0:
        return ONE
    if exponent == 1:
        return base
    if exponent == exponent.to_integral_value():
        return base ** int(exponent)
    return (exponent * base.ln()).exp()


@register_model
class WeightedPoolModel(PriceImpactModel):
    """Balancer V2 weighted pool pricing for one token pair."""

    family = PoolFamily.WEIGHTED_POOL

    def spot_price(self, pool: PoolState) -> Decimal:
        return self._spot(pool.reserve_in, pool.weight_in, pool.reserve_out, pool.weight_out)

    @staticmethod
    def _spot(balance_in: Decimal, weight_in: Decimal,
              balance_out: Decimal, weight_out: Decimal) -> Decimal:
        # Output per input: (B_out / W_out) / (B_in / W_in)
        return (balance_out / weight_out) / (balance_in / weight_in)

    def _simulate(self, pool: PoolState, amount_after_fee: Decimal) -> SwapSimulation:
        new_balance_in = pool.reserve_in + amount_after_fee
        ratio = pool.reserve_in / new_balance_in
        power = weighted_pow(ratio, pool.weight_in / pool.weight_out)
        amount_out = pool.reserve_out * (ONE - power)
        new_balance_out = pool.reserve_out - amount_out

        return SwapSimulation(
            amount_out=amount_out,
            spot_before=self.spot_price(pool),
            spot_after=self._spot(new_balance_in, pool.weight_in, new_balance_out, pool.weight_out),
            reserve_in_after=new_balance_in,
            reserve_out_after=new_balance_out,
        )
