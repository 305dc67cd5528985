"""
Curve StableSwap price-impact model.

The StableSwap invariant combines constant sum and constant product:

    Ann * S + D = Ann * D + D^(n+1) / (n^n * P)

where Ann = A * n^n, S is the sum and P the product of the balances.
D is solved with Newton's method; the output balance is then solved for
the post-trade input balance with the quadratic Newton step used by the
Curve contracts.
"""
import logging
from decimal import Decimal, localcontext
from typing import List

from ..core.models import PoolFamily, PoolState
from ..core.precision import HIGH_PRECISION
from ..exceptions import PoolStateInvalid
from .base import PriceImpactModel, SwapSimulation, register_model

logger = logging.getLogger(__name__)

CONVERGENCE_PRECISION = Decimal("1e-30")
MAX_ITERATIONS = 255


def get_D(balances: List[Decimal], amp: Decimal) -> Decimal:
    """
    Solve the invariant D for the given balances.

    Newton step: D = (Ann*S + n*D_P) * D / ((Ann - 1) * D + (n + 1) * D_P)

    Raises:
        PoolStateInvalid: if the iteration does not converge
    """
    n = len(balances)
    S = sum(balances)
    if S == 0:
        return Decimal("0")

    Ann = amp * n ** n
    D = S
    for _ in range(MAX_ITERATIONS):
        D_P = D
        for balance in balances:
            D_P = D_P * D / (n * balance)
        D_prev = D
        D = (Ann * S + n * D_P) * D / ((Ann - 1) * D + (n + 1) * D_P)
        if abs(D - D_prev) <= CONVERGENCE_PRECISION * D:
            return D

    raise PoolStateInvalid(f"StableSwap invariant did not converge after {MAX_ITERATIONS} iterations")


def get_y(i: int, j: int, x: Decimal, balances: List[Decimal], amp: Decimal, D: Decimal) -> Decimal:
    """
    Balance of coin ``j`` once coin ``i`` holds ``x``, keeping D constant.

    Solves y^2 + (b - D) * y = c with b = S' + D/Ann and
    c = D^(n+1) / (n^n * P' * Ann), where S' and P' exclude coin j.

    Raises:
        PoolStateInvalid: if the iteration does not converge
    """
    n = len(balances)
    Ann = amp * n ** n

    c = D
    S_ = Decimal("0")
    for k in range(n):
        if k == j:
            continue
        x_k = x if k == i else balances[k]
        S_ += x_k
        c = c * D / (x_k * n)
    c = c * D / (Ann * n)
    b = S_ + D / Ann

    y = D
    for _ in range(MAX_ITERATIONS):
        y_prev = y
        y = (y * y + c) / (2 * y + b - D)
        if abs(y - y_prev) <= CONVERGENCE_PRECISION * D:
            return y

    raise PoolStateInvalid(f"StableSwap output balance did not converge after {MAX_ITERATIONS} iterations")


def spot_price(balance_in: Decimal, balance_out: Decimal, amp: Decimal, D: Decimal) -> Decimal:
    """
    Marginal output per input from the invariant's partial derivatives.

    dy/dx = (Ann + D_P / x) / (Ann + D_P / y) with D_P = D^(n+1) / (n^n * x * y).
    """
    n = 2
    Ann = amp * n ** n
    D_P = D ** (n + 1) / (n ** n * balance_in * balance_out)
    return (Ann + D_P / balance_in) / (Ann + D_P / balance_out)


@register_model
class StableSwapModel(PriceImpactModel):
    """Two-coin StableSwap pricing (input coin 0, output coin 1)."""

    family = PoolFamily.STABLE_SWAP

    def spot_price(self, pool: PoolState) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = HIGH_PRECISION
            balances = [pool.reserve_in, pool.reserve_out]
            D = get_D(balances, pool.amplification)
            return spot_price(pool.reserve_in, pool.reserve_out, pool.amplification, D)

    def _simulate(self, pool: PoolState, amount_after_fee: Decimal) -> SwapSimulation:
        amp = pool.amplification
        balances = [pool.reserve_in, pool.reserve_out]
        D = get_D(balances, amp)

        new_x = pool.reserve_in + amount_after_fee
        new_y = get_y(0, 1, new_x, balances, amp, D)
        amount_out = pool.reserve_out - new_y

        if new_y <= 0 or amount_out <= 0:
            raise PoolStateInvalid(
                f"StableSwap trade of {amount_after_fee} leaves no output balance",
                stage="price_impact",
                venue=pool.venue,
            )

        logger.debug(f"StableSwap D={D} y: {pool.reserve_out} -> {new_y}")

        return SwapSimulation(
            amount_out=amount_out,
            spot_before=spot_price(pool.reserve_in, pool.reserve_out, amp, D),
            spot_after=spot_price(new_x, new_y, amp, D),
            reserve_in_after=new_x,
            reserve_out_after=new_y,
        )
