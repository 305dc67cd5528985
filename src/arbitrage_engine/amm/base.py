"""Common contract for AMM price-impact models."""
import logging
from abc import ABC, abstractmethod
from decimal import Decimal, localcontext
from typing import Dict, Optional, Type

from ..core.models import PoolFamily, PoolState, PriceImpactResult
from ..core.precision import HIGH_PRECISION, ONE, Number, quantize, require_positive, to_decimal
from ..exceptions import PoolStateInvalid

logger = logging.getLogger(__name__)

DEFAULT_MAX_PRICE_IMPACT = Decimal("0.05")


class PriceImpactModel(ABC):
    """
    Simulates a trade against one pool family.

    Subclasses implement ``_simulate`` and return the raw output; this base
    class applies the fee, validates inputs and derives the impact figures
    the same way for every family:

    - price_before: spot price, output per input
    - price_after: execution price of the fee-adjusted input
    - price_impact: |price_after - price_before| / price_before
    - effective_price: output per gross input (fee included)
    - slippage: |effective_price - price_before| / price_before
    """

    family: PoolFamily

    def price_impact(
        self,
        pool: PoolState,
        amount: Number,
        max_price_impact: Number = DEFAULT_MAX_PRICE_IMPACT
    ) -> PriceImpactResult:
        """
        Simulate selling ``amount`` of the input token into ``pool``.

        Raises:
            InvalidInput: if amount is not positive
            PoolStateInvalid: if the pool is of another family or its state
                cannot be priced
        """
        if pool.family != self.family:
            raise PoolStateInvalid(
                f"{type(self).__name__} cannot price a {pool.family.value} pool",
                stage="price_impact",
                venue=pool.venue,
            )
        pool.check_state()

        amount_in = require_positive(amount, "amount", stage="price_impact")
        max_impact = to_decimal(max_price_impact, "max_price_impact")

        with localcontext() as ctx:
            ctx.prec = HIGH_PRECISION
            amount_after_fee = amount_in * (ONE - pool.fee_rate)
            simulation = self._simulate(pool, amount_after_fee)
            return self._build_result(pool, amount_in, amount_after_fee, simulation, max_impact)

    @abstractmethod
    def spot_price(self, pool: PoolState) -> Decimal:
        """Marginal output per unit of input before any trade."""

    @abstractmethod
    def _simulate(self, pool: PoolState, amount_after_fee: Decimal) -> "SwapSimulation":
        """Swap the fee-adjusted input and report output and post-trade state."""

    def _build_result(
        self,
        pool: PoolState,
        amount_in: Decimal,
        amount_after_fee: Decimal,
        simulation: "SwapSimulation",
        max_impact: Decimal
    ) -> PriceImpactResult:
        price_before = simulation.spot_before
        consumed = simulation.amount_consumed if simulation.amount_consumed is not None else amount_after_fee

        if simulation.amount_out <= 0 or consumed <= 0:
            raise PoolStateInvalid(
                f"Trade of {amount_in} produces no output",
                stage="price_impact",
                venue=pool.venue,
            )

        price_after = simulation.amount_out / consumed
        impact = abs(price_after - price_before) / price_before

        gross_consumed = consumed / (ONE - pool.fee_rate)
        effective_price = simulation.amount_out / gross_consumed
        slippage = abs(effective_price - price_before) / price_before

        impact_q = quantize(impact)
        acceptable = impact_q <= max_impact and simulation.fully_filled

        if not acceptable:
            logger.debug(
                f"{self.family.value} trade of {amount_in} on {pool.venue}: "
                f"impact {impact_q} above {max_impact} or partially filled"
            )

        return PriceImpactResult(
            family=self.family,
            amount_in=amount_in,
            amount_in_after_fee=quantize(amount_after_fee),
            amount_out=quantize(simulation.amount_out),
            price_before=quantize(price_before),
            price_after=quantize(price_after),
            marginal_price_after=quantize(simulation.spot_after),
            price_impact=impact_q,
            slippage=quantize(slippage),
            effective_price=quantize(effective_price),
            max_price_impact=max_impact,
            is_acceptable_impact=acceptable,
            reserve_in_after=simulation.reserve_in_after,
            reserve_out_after=simulation.reserve_out_after,
            fully_filled=simulation.fully_filled,
        )


class SwapSimulation:
    """Raw outcome of one family's swap math, before impact figures are derived."""

    __slots__ = (
        "amount_out", "spot_before", "spot_after",
        "reserve_in_after", "reserve_out_after",
        "amount_consumed", "fully_filled",
    )

    def __init__(
        self,
        amount_out: Decimal,
        spot_before: Decimal,
        spot_after: Decimal,
        reserve_in_after: Optional[Decimal] = None,
        reserve_out_after: Optional[Decimal] = None,
        amount_consumed: Optional[Decimal] = None,
        fully_filled: bool = True
    ):
        self.amount_out = amount_out
        self.spot_before = spot_before
        self.spot_after = spot_after
        self.reserve_in_after = reserve_in_after
        self.reserve_out_after = reserve_out_after
        self.amount_consumed = amount_consumed
        self.fully_filled = fully_filled


_MODELS: Dict[PoolFamily, PriceImpactModel] = {}


def register_model(cls: Type[PriceImpactModel]) -> Type[PriceImpactModel]:
    """Class decorator adding a model to the family registry."""
    _MODELS[cls.family] = cls()
    return cls


def get_model(family: PoolFamily) -> PriceImpactModel:
    """Look up the model for a pool family."""
    try:
        return _MODELS[PoolFamily(family)]
    except (KeyError, ValueError) as e:
        raise PoolStateInvalid(f"No price-impact model for family {family!r}") from e


def calculate_price_impact(
    pool: PoolState,
    amount: Number,
    max_price_impact: Number = DEFAULT_MAX_PRICE_IMPACT
) -> PriceImpactResult:
    """Dispatch a pool to the model of its family."""
    return get_model(pool.family).price_impact(pool, amount, max_price_impact)


def registered_families() -> Dict[PoolFamily, PriceImpactModel]:
    return dict(_MODELS)
