"""Triangular route composition."""
from dataclasses import dataclass
from decimal import Decimal
from itertools import permutations
from typing import Iterable, List, Optional, Sequence, Tuple

from ..core.models import PairQuote
from ..core.precision import HUNDRED, ONE, quantize


@dataclass(frozen=True)
class RouteQuote:
    """A priced three-leg route ``base -> X -> Y -> base``."""
    route: Tuple[str, ...]
    legs: Tuple[PairQuote, ...]
    amount_in: Decimal
    amount_out: Decimal
    gross_rate: Decimal          # product of quoted rates
    net_rate: Decimal            # product of rates after each leg's fee

    @property
    def profit(self) -> Decimal:
        return self.amount_out - self.amount_in

    @property
    def fees(self) -> Decimal:
        return quantize(self.amount_in * (self.gross_rate - self.net_rate))

    @property
    def profit_percentage(self) -> Decimal:
        return quantize(self.profit / self.amount_in * HUNDRED)

    @property
    def spread_percentage(self) -> Decimal:
        return quantize((self.gross_rate - ONE) * HUNDRED)

    @property
    def is_profitable(self) -> bool:
        return self.amount_out > self.amount_in


def candidate_routes(base: str, intermediates: Iterable[str]) -> List[Tuple[str, str, str, str]]:
    """Every ordered pair of distinct intermediates closes a cycle back to ``base``."""
    tokens = [t.upper() for t in intermediates if t.upper() != base.upper()]
    unique = list(dict.fromkeys(tokens))
    return [(base.upper(), x, y, base.upper()) for x, y in permutations(unique, 2)]


def best_leg(quotes: Sequence[PairQuote]) -> Optional[PairQuote]:
    """Highest rate after fee among the venues quoting one leg."""
    if not quotes:
        return None
    return max(quotes, key=lambda q: q.rate_after_fee)


def compose_route(route: Tuple[str, ...], legs: Sequence[PairQuote], amount: Decimal) -> RouteQuote:
    """Compound ``amount`` through the legs, paying each leg's fee."""
    gross_rate = ONE
    net_rate = ONE
    for leg in legs:
        gross_rate *= leg.rate
        net_rate *= leg.rate_after_fee
    return RouteQuote(
        route=tuple(route),
        legs=tuple(legs),
        amount_in=amount,
        amount_out=amount * net_rate,
        gross_rate=gross_rate,
        net_rate=net_rate,
    )
