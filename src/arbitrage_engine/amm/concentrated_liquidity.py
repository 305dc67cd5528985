"""
Uniswap V3 concentrated liquidity price-impact model.

Price convention follows Uniswap: P(tick) = 1.0001^tick is token1 per token0.
The simulated trade sells token1 for token0, so the price moves up through
the tick boundaries between ``current_tick`` and ``tick_upper``.

Within one initialized range with active liquidity L:
    token1 in  = L * (sqrtP_next - sqrtP)
    token0 out = L * (1/sqrtP - 1/sqrtP_next)
Crossing an initialized tick upward adds its ``liquidity_net`` to L.
"""
import logging
from decimal import Decimal
from typing import Iterator

from ..core.models import PoolFamily, PoolState
from ..core.precision import ONE
from .base import PriceImpactModel, SwapSimulation, register_model

logger = logging.getLogger(__name__)

TICK_BASE = Decimal("1.0001")


def tick_to_price(tick: int) -> Decimal:
    """token1 per token0 at ``tick``."""
    return TICK_BASE ** tick


def tick_to_sqrt_price(tick: int) -> Decimal:
    return tick_to_price(tick).sqrt()


def _boundaries(current_tick: int, tick_upper: int, tick_spacing: int) -> Iterator[int]:
    """Initialized tick boundaries above ``current_tick``, ending at ``tick_upper``."""
    tick = (current_tick // tick_spacing + 1) * tick_spacing
    while tick < tick_upper:
        yield tick
        tick += tick_spacing
    yield tick_upper


@register_model
class ConcentratedLiquidityModel(PriceImpactModel):
    """Tick-walking simulation of a single swap direction."""

    family = PoolFamily.CONCENTRATED_LIQUIDITY

    def spot_price(self, pool: PoolState) -> Decimal:
        """token0 out per token1 in at the current tick."""
        return ONE / tick_to_price(pool.current_tick)

    def _simulate(self, pool: PoolState, amount_after_fee: Decimal) -> SwapSimulation:
        remaining = amount_after_fee
        amount_out = Decimal("0")
        liquidity = pool.liquidity
        sqrt_price = tick_to_sqrt_price(pool.current_tick)
        fully_filled = True
        ticks_crossed = 0

        for boundary in _boundaries(pool.current_tick, pool.tick_upper, pool.tick_spacing):
            sqrt_next = tick_to_sqrt_price(boundary)
            capacity = liquidity * (sqrt_next - sqrt_price)

            if remaining <= capacity:
                target = sqrt_price + remaining / liquidity
                amount_out += liquidity * (ONE / sqrt_price - ONE / target)
                sqrt_price = target
                remaining = Decimal("0")
                break

            amount_out += liquidity * (ONE / sqrt_price - ONE / sqrt_next)
            remaining -= capacity
            sqrt_price = sqrt_next

            if boundary >= pool.tick_upper:
                break

            liquidity += pool.tick_liquidity_net.get(boundary, Decimal("0"))
            ticks_crossed += 1
            if liquidity <= 0:
                logger.debug(f"Active liquidity exhausted at tick {boundary} on {pool.venue}")
                break

        if remaining > 0:
            fully_filled = False
            logger.debug(
                f"Partial fill on {pool.venue}: {remaining} of {amount_after_fee} unfilled "
                f"after crossing {ticks_crossed} ticks"
            )

        return SwapSimulation(
            amount_out=amount_out,
            spot_before=self.spot_price(pool),
            spot_after=ONE / (sqrt_price * sqrt_price),
            amount_consumed=amount_after_fee - remaining,
            fully_filled=fully_filled,
        )
